"""Vision analysis through any OpenAI-compatible chat completions API.

Defaults to OpenRouter, so Gemini, Claude and GPT vision models all work with
one client. Uses the `openai` Python package directly.
"""

import base64
import re
from typing import Any, Sequence

from loguru import logger
from openai import AsyncOpenAI

from skycast.analysis.base import AnalysisError, BaseAnalyzer
from skycast.models import DeliverableItem
from skycast.utils.helpers import guess_extension

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}


def _normalize_api_key(value: str | None) -> str:
    """Drop a pasted ``Bearer`` prefix; the SDK adds its own."""
    token = (value or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token


def _strip_leading_think_blocks(text: str | None) -> str | None:
    """Remove leaked leading <think>...</think> blocks from model output.

    If the whole response is wrapped, only the tags are removed.
    """
    if not isinstance(text, str):
        return text

    pattern = re.compile(
        r"^\s*(?:<think\b[^>]*>[\s\S]*?<\/think>\s*)+",
        flags=re.IGNORECASE,
    )
    match = pattern.match(text)
    if not match:
        return text

    remainder = text[match.end():].lstrip()
    if remainder:
        return remainder

    return re.sub(r"</?think\b[^>]*>", "", text, flags=re.IGNORECASE).strip()


def image_part(item: DeliverableItem) -> dict[str, Any]:
    """Encode an item as an ``image_url`` content part with a data URL."""
    mime = _MIME_TYPES.get(guess_extension(item.payload), "image/jpeg")
    data = base64.b64encode(item.payload).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{data}"}}


class OpenAIAnalyzer(BaseAnalyzer):
    """Single multi-image chat completion per report."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str | None = None,
        timeout: float = 120.0,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        client: Any | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        # The retry engine owns retrying; keep the SDK from doubling it.
        self.client = client or AsyncOpenAI(
            api_key=_normalize_api_key(api_key),
            base_url=api_base,
            max_retries=0,
            timeout=timeout,
        )

    def build_messages(self, items: Sequence[DeliverableItem], prompt: str) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        content.extend(image_part(item) for item in items)
        return [{"role": "user", "content": content}]

    async def analyze(self, items: Sequence[DeliverableItem], prompt: str) -> str:
        logger.info(f"Analyzing {len(items)} images with {self.model}")
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(items, prompt),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not response.choices:
            raise AnalysisError("Model returned no choices")
        text = _strip_leading_think_blocks(response.choices[0].message.content) or ""
        text = text.strip()
        if not text:
            raise AnalysisError("Model returned an empty analysis")
        return text
