"""
Pipeline orchestrator: capture → analysis → delivery.

Stages run strictly in order, each under its own retry policy:

1. Capture. Failure ends the run (nothing downstream has input).
2. Analysis. Failure substitutes the fallback text and continues, but the
   run still counts as failed.
3. Delivery. Media batches are best-effort: a lost batch is announced and
   skipped. The report text is essential: if it cannot be sent, the report is
   saved to the fallback store and the run ends as a partial success.

Any non-success run finishes with a best-effort error notice to the
destination.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from loguru import logger

from skycast.analysis.base import BaseAnalyzer
from skycast.capture.base import BaseCapture
from skycast.delivery.base import BaseDelivery
from skycast.delivery.batching import split_batches
from skycast.models import DeliverableItem
from skycast.pipeline.status import BatchFailure, PipelineStatus, RunOutcome, RunResult
from skycast.retry.audit import RetryAuditLog, chain_observers, log_retry
from skycast.retry.policy import RetryObserver, RetryPolicy, Sleeper, execute, execute_or_raise
from skycast.storage.fallback import FallbackStore
from skycast.utils.helpers import truncate_string

PromptBuilder = Callable[[Sequence[DeliverableItem]], str]
FallbackBuilder = Callable[[], str]


@dataclass(frozen=True)
class PipelinePolicies:
    """One retry policy per call site."""
    acquisition: RetryPolicy
    transformation: RetryPolicy
    delivery: RetryPolicy
    notification: RetryPolicy


def _default_prompt(items: Sequence[DeliverableItem]) -> str:
    labels = "\n".join(f"{i}. {item.label}" for i, item in enumerate(items, start=1))
    return f"Describe the weather visible in each of these images:\n{labels}"


def _default_fallback() -> str:
    return "Sorry, today's weather analysis is unavailable because of a technical problem."


class Pipeline:
    """
    Runs one capture-analyze-deliver cycle.

    All collaborators are passed in; nothing is read from global state.
    """

    def __init__(
        self,
        capture: BaseCapture,
        analyzer: BaseAnalyzer,
        delivery: BaseDelivery,
        store: FallbackStore,
        policies: PipelinePolicies,
        *,
        audit: RetryAuditLog | None = None,
        prompt_builder: PromptBuilder | None = None,
        fallback_builder: FallbackBuilder | None = None,
        batch_size: int = 5,
        batch_pause: float = 1.0,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.capture = capture
        self.analyzer = analyzer
        self.delivery = delivery
        self.store = store
        self.policies = policies
        self.audit = audit
        self.prompt_builder = prompt_builder or _default_prompt
        self.fallback_builder = fallback_builder or _default_fallback
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self._sleep = sleep

    def _observer(self, operation: str, policy: RetryPolicy) -> RetryObserver:
        audit = self.audit.observer(operation, policy) if self.audit else None
        return chain_observers(log_retry(operation), audit)

    async def _run_stage(self, operation: str, func, policy: RetryPolicy):
        return await execute(func, policy, on_retry=self._observer(operation, policy), sleep=self._sleep)

    async def run(self) -> RunResult:
        """Run the pipeline once. Never raises for stage failures."""
        status = PipelineStatus()
        result = RunResult(status=status)

        # 1. Acquisition
        logger.info("Stage 1/3: capturing images")
        acquired = await self._run_stage("capture", self.capture.capture, self.policies.acquisition)
        if not acquired.ok:
            logger.error(f"Capture failed after {acquired.attempts} attempt(s): {acquired.error}")
            result.error = acquired.error
            await self._notify_failure(result)
            return result
        status.mark_acquired()
        items: list[DeliverableItem] = list(acquired.value)
        result.items = items
        logger.info(f"Captured {len(items)} item(s)")

        # 2. Transformation
        logger.info("Stage 2/3: analyzing images")
        prompt = self.prompt_builder(items)
        analysed = await self._run_stage(
            "analyze",
            lambda: self.analyzer.analyze(items, prompt),
            self.policies.transformation,
        )
        if analysed.ok:
            status.mark_transformed()
            result.text = analysed.value.strip()
        else:
            logger.error(f"Analysis failed after {analysed.attempts} attempt(s): {analysed.error}")
            logger.warning("Continuing with fallback text")
            status.mark_fallback_text()
            result.error = analysed.error
            result.text = self.fallback_builder()

        # 3. Delivery
        logger.info("Stage 3/3: delivering report")
        delivery_error = await self._deliver(result)
        if delivery_error is None:
            status.mark_delivered()
        elif result.error is None:
            result.error = delivery_error

        outcome = status.outcome
        if outcome is RunOutcome.SUCCESS:
            logger.info("Run complete: report delivered")
        else:
            logger.warning(f"Run finished with outcome {outcome.value} (exit {outcome.exit_code})")
            await self._notify_failure(result)
        return result

    async def _deliver(self, result: RunResult) -> BaseException | None:
        """Send media batches then the text; return the error that failed delivery, if any."""
        items = result.items
        batches = split_batches(items, self.batch_size)
        offset = 0
        for index, batch in enumerate(batches):
            name = f"send_batch[{index + 1}/{len(batches)}]"
            sent = await self._run_stage(
                name,
                lambda b=batch, o=offset: self.delivery.send_batch(b, o),
                self.policies.delivery,
            )
            offset += len(batch)
            if not sent.ok:
                logger.warning(
                    f"Lost batch {index + 1}/{len(batches)} ({len(batch)} items) "
                    f"after {sent.attempts} attempt(s): {sent.error}"
                )
                result.lost_batches.append(
                    BatchFailure(index=index, labels=[i.label for i in batch], error=sent.error)
                )
                await self._notify(
                    "notify_batch_loss",
                    f"⚠️ Note: could not send {len(batch)} image(s) due to: "
                    f"{truncate_string(str(sent.error), 300)}",
                )
                continue
            if index + 1 < len(batches):
                await self._sleep(self.batch_pause)

        try:
            await execute_or_raise(
                lambda: self.delivery.send_text(result.text),
                self.policies.delivery,
                on_retry=self._observer("send_text", self.policies.delivery),
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error(f"Report text could not be delivered: {e}")
            result.fallback_path, result.fallback_error = self._save_fallback(result, e)
            return e

        logger.info(
            f"Delivered text and {len(batches) - len(result.lost_batches)}/{len(batches)} media batch(es)"
        )
        return None

    def _save_fallback(
        self, result: RunResult, error: BaseException
    ) -> tuple[Path | None, BaseException | None]:
        try:
            return self.store.save(result.text, result.items, error), None
        except OSError as e:
            logger.error(f"Could not save undelivered report locally: {e}")
            return None, e

    async def _notify(self, operation: str, message: str) -> bool:
        """Best-effort message to the destination. Never raises."""
        sent = await self._run_stage(
            operation,
            lambda: self.delivery.send_text(message),
            self.policies.notification,
        )
        if not sent.ok:
            logger.error(f"{operation}: could not notify destination: {sent.error}")
        return sent.ok

    async def _notify_failure(self, result: RunResult) -> None:
        error = result.error
        detail = f"{type(error).__name__}: {error}" if error else "unknown error"
        lines = [
            f"⚠️ *Weather report run {result.outcome.value}*",
            "",
            "```",
            truncate_string(detail, 1000),
            "```",
        ]
        if result.fallback_path is not None:
            lines.append(f"Report saved locally as `{result.fallback_path.name}`.")
        delivered = await self._notify("notify_error", "\n".join(lines))
        if not delivered:
            logger.error(f"Original run error was: {detail}")
