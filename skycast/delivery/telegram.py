"""Telegram delivery using python-telegram-bot."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from loguru import logger
from telegram import Bot, InputMediaPhoto
from telegram.error import (
    BadRequest,
    ChatMigrated,
    Forbidden,
    InvalidToken,
    NetworkError,
    RetryAfter,
    TelegramError,
    TimedOut,
)
from telegram.request import HTTPXRequest

from skycast.delivery.base import BaseDelivery
from skycast.delivery.batching import MAX_BATCH_SIZE
from skycast.delivery.errors import PermanentDeliveryError, TemporaryDeliveryError
from skycast.models import DeliverableItem
from skycast.utils.helpers import guess_extension, safe_filename


def translate_telegram_error(e: Exception) -> Exception:
    """Map python-telegram-bot exceptions onto delivery errors.

    The messages carry the HTTP status and keywords the string classifier
    matches on.
    """
    if isinstance(e, RetryAfter):
        wait = e.retry_after
        seconds = wait.total_seconds() if isinstance(wait, timedelta) else float(wait)
        return TemporaryDeliveryError(
            f"Telegram rate limit (429): retry after {seconds:g}s", retry_after=seconds
        )
    if isinstance(e, TimedOut):
        return TemporaryDeliveryError(f"Telegram request timed out: {e}")
    if isinstance(e, BadRequest):
        return PermanentDeliveryError(f"Telegram 400 bad request: {e}")
    if isinstance(e, Forbidden):
        return PermanentDeliveryError(f"Telegram 403 forbidden: {e}")
    if isinstance(e, InvalidToken):
        return PermanentDeliveryError(f"Telegram 401 unauthorized: {e}")
    if isinstance(e, ChatMigrated):
        return PermanentDeliveryError(f"Telegram chat not found, migrated to {e.new_chat_id}")
    if isinstance(e, NetworkError):
        return TemporaryDeliveryError(f"Telegram network error: {e}")
    if isinstance(e, TelegramError):
        return TemporaryDeliveryError(f"Telegram API error: {e}")
    return TemporaryDeliveryError(f"Telegram send failed: {e}")


class TelegramDelivery(BaseDelivery):
    """
    Posts report photos as media groups and the report text as a message.

    The bot is initialised on first send, so a network failure there goes
    through the caller's retry policy like any other send failure. Use as an
    async context manager so the HTTP client is shut down after the run.
    """

    name = "telegram"

    def __init__(
        self,
        token: str,
        chat_id: str,
        proxy: str | None = None,
        bot: Any | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if not chat_id:
            raise ValueError("Telegram chat_id is not set")
        if bot is None:
            if not token:
                raise ValueError("Telegram bot token is not set")
            request = HTTPXRequest(proxy=proxy) if proxy else None
            bot = Bot(token=token, request=request)
        self.chat_id = chat_id
        self._bot = bot
        self._clock = clock
        self._initialized = False

    async def __aenter__(self) -> "TelegramDelivery":
        return self

    async def __aexit__(self, *exc) -> None:
        if self._initialized:
            self._initialized = False
            await self._bot.shutdown()

    async def _ensure_ready(self) -> None:
        if self._initialized:
            return
        try:
            await self._bot.initialize()
        except TelegramError as e:
            raise translate_telegram_error(e) from e
        self._initialized = True

    def _caption(self, item: DeliverableItem, position: int) -> str:
        if position == 0:
            return f"Camera snapshots - {self._clock():%Y-%m-%d %H:%M}\n{item.label}"
        return item.label

    def _media(self, items: Sequence[DeliverableItem], offset: int) -> list[InputMediaPhoto]:
        media = []
        for i, item in enumerate(items):
            filename = f"{offset + i + 1:03d}_{safe_filename(item.label)}.{guess_extension(item.payload)}"
            media.append(
                InputMediaPhoto(
                    media=item.payload,
                    caption=self._caption(item, offset + i),
                    filename=filename,
                )
            )
        return media

    async def send_batch(self, items: Sequence[DeliverableItem], offset: int = 0) -> None:
        """Send up to 10 items as one media group."""
        if not items:
            return
        if len(items) > MAX_BATCH_SIZE:
            raise PermanentDeliveryError(
                f"Invalid media group: {len(items)} items exceeds Telegram's limit of {MAX_BATCH_SIZE}"
            )

        await self._ensure_ready()
        try:
            await self._bot.send_media_group(chat_id=self.chat_id, media=self._media(items, offset))
        except TelegramError as e:
            raise translate_telegram_error(e) from e
        logger.debug(f"Sent media group of {len(items)} to {self.chat_id} (offset {offset})")

    async def send_text(self, text: str) -> None:
        """Send Markdown text, falling back to plain text if Telegram rejects the markup."""
        await self._ensure_ready()
        try:
            await self._bot.send_message(chat_id=self.chat_id, text=text, parse_mode="Markdown")
        except BadRequest as e:
            if "parse entities" not in str(e).lower():
                raise translate_telegram_error(e) from e
            logger.warning(f"Markdown parse failed, falling back to plain text: {e}")
            try:
                await self._bot.send_message(chat_id=self.chat_id, text=text)
            except TelegramError as e2:
                raise translate_telegram_error(e2) from e2
        except TelegramError as e:
            raise translate_telegram_error(e) from e
        logger.debug(f"Sent text message ({len(text)} chars) to {self.chat_id}")
