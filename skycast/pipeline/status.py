"""Run status, outcome and process exit codes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from skycast.models import DeliverableItem


class RunOutcome(str, Enum):
    """Overall result of one pipeline run."""
    SUCCESS = "success"
    PARTIAL = "partial"  # Report produced, delivery failed, fallback saved
    FAILED = "failed"    # No usable report produced

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    RunOutcome.SUCCESS: 0,
    RunOutcome.PARTIAL: 1,
    RunOutcome.FAILED: 2,
}


@dataclass
class PipelineStatus:
    """Per-stage success flags for one run.

    The ``*_ok`` flags only move from False to True. ``used_fallback_text``
    records that the report text is the canned fallback because the model
    call failed; ``transformation_ok`` stays False in that case.
    """
    acquisition_ok: bool = False
    transformation_ok: bool = False
    delivery_ok: bool = False
    used_fallback_text: bool = False

    def mark_acquired(self) -> None:
        self.acquisition_ok = True

    def mark_transformed(self) -> None:
        self.transformation_ok = True

    def mark_delivered(self) -> None:
        self.delivery_ok = True

    def mark_fallback_text(self) -> None:
        self.used_fallback_text = True

    @property
    def outcome(self) -> RunOutcome:
        if not (self.acquisition_ok and self.transformation_ok):
            return RunOutcome.FAILED
        if not self.delivery_ok:
            return RunOutcome.PARTIAL
        return RunOutcome.SUCCESS

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code


@dataclass(frozen=True)
class BatchFailure:
    """A media batch that could not be delivered."""
    index: int
    labels: list[str]
    error: BaseException


@dataclass
class RunResult:
    """Everything a caller needs after a run."""
    status: PipelineStatus
    error: BaseException | None = None
    text: str = ""
    items: list[DeliverableItem] = field(default_factory=list)
    lost_batches: list[BatchFailure] = field(default_factory=list)
    fallback_path: Path | None = None
    fallback_error: BaseException | None = None

    @property
    def outcome(self) -> RunOutcome:
        return self.status.outcome

    @property
    def exit_code(self) -> int:
        return self.status.exit_code
