"""Build a ready-to-run pipeline from configuration."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence
from zoneinfo import ZoneInfo

from skycast.analysis.openai_analyzer import OpenAIAnalyzer
from skycast.analysis.prompts import build_analysis_prompt, build_fallback_text, local_greeting
from skycast.capture.snapshot import SnapshotCapture
from skycast.config.schema import Config, RetrySettings
from skycast.delivery.telegram import TelegramDelivery
from skycast.models import DeliverableItem
from skycast.pipeline.orchestrator import Pipeline, PipelinePolicies
from skycast.retry.audit import RetryAuditLog
from skycast.retry.classifier import classify_error, classify_typed_error
from skycast.retry.policy import RetryPolicy
from skycast.storage.fallback import FallbackStore


def policy_from_settings(settings: RetrySettings, typed_errors: bool = False) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.max_retries,
        initial_delay=settings.initial_delay,
        backoff_multiplier=settings.backoff_multiplier,
        classify=classify_typed_error if typed_errors else classify_error,
    )


def policies_from_config(config: Config) -> PipelinePolicies:
    retry = config.retry
    return PipelinePolicies(
        acquisition=policy_from_settings(retry.capture, retry.typed_errors),
        transformation=policy_from_settings(retry.analysis, retry.typed_errors),
        delivery=policy_from_settings(retry.delivery, retry.typed_errors),
        notification=policy_from_settings(retry.notify, retry.typed_errors),
    )


def build_pipeline(config: Config, delivery: TelegramDelivery | None = None) -> Pipeline:
    """Wire collaborators from ``config``.

    Raises:
        ValueError: if required settings (cameras, API key, token, chat id)
            are missing.
    """
    missing = []
    if not config.capture.cameras:
        missing.append("capture.cameras")
    if not config.provider.api_key:
        missing.append("provider.apiKey (SKYCAST_PROVIDER__API_KEY)")
    if delivery is None:
        if not config.telegram.token:
            missing.append("telegram.token (SKYCAST_TELEGRAM__TOKEN)")
        if not config.telegram.chat_id:
            missing.append("telegram.chatId")
    if missing:
        raise ValueError("Missing required settings: " + ", ".join(missing))

    tz = ZoneInfo(config.report.timezone)
    region = config.report.region

    def prompt_builder(items: Sequence[DeliverableItem]) -> str:
        greeting = local_greeting(datetime.now(tz))
        return build_analysis_prompt([i.label for i in items], greeting.greeting, greeting.day_name, region)

    def fallback_builder() -> str:
        return build_fallback_text(local_greeting(datetime.now(tz)).day_name, region)

    if delivery is None:
        delivery = TelegramDelivery(
            token=config.telegram.token,
            chat_id=config.telegram.chat_id,
            proxy=config.telegram.proxy,
            clock=lambda: datetime.now(tz),
        )

    return Pipeline(
        capture=SnapshotCapture(
            cameras=config.capture.cameras,
            target_count=config.capture.target_count,
            timeout=config.capture.timeout,
            save_dir=config.capture_save_path,
        ),
        analyzer=OpenAIAnalyzer(
            api_key=config.provider.api_key,
            model=config.provider.model,
            api_base=config.provider.api_base,
            timeout=config.provider.timeout,
            max_tokens=config.provider.max_tokens,
            temperature=config.provider.temperature,
        ),
        delivery=delivery,
        store=FallbackStore(config.reports_path),
        policies=policies_from_config(config),
        audit=RetryAuditLog(config.logs_path / "retry.jsonl"),
        prompt_builder=prompt_builder,
        fallback_builder=fallback_builder,
        batch_size=config.telegram.batch_size,
        batch_pause=config.telegram.batch_pause,
    )
