"""Append-only audit trail of retry attempts.

One JSON line per retry, across every policy in the process::

    {"ts": "...", "operation": "send_batch[2]", "attempt": 1,
     "max_attempts": 4, "delay": 2.0, "error": "TimeoutError: timed out"}

The file is only ever opened in append mode. Writes are best-effort because
observers must never change the outcome of the operation being retried.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from skycast.retry.policy import RetryObserver, RetryPolicy


class RetryAuditLog:
    """Writes retry attempts to a JSONL file."""

    def __init__(self, path: Path):
        self._path = path.expanduser()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def record(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        error: BaseException,
        delay: float,
    ) -> None:
        entry = {
            "ts": datetime.now().isoformat(),
            "operation": operation,
            "attempt": attempt,
            "max_attempts": max_attempts,
            "delay": delay,
            "error": f"{type(error).__name__}: {error}",
        }
        try:
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"Could not append to retry audit log {self._path}: {e}")

    def observer(self, operation: str, policy: RetryPolicy) -> RetryObserver:
        """Build an ``on_retry`` callback bound to one operation name."""
        def _observe(attempt: int, error: BaseException, delay: float) -> None:
            self.record(operation, attempt, policy.max_attempts, error, delay)
        return _observe

    def read(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return recorded entries in file order (oldest first)."""
        if not self._path.exists():
            return []
        entries: list[dict[str, Any]] = []
        for line in self._path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        if limit is not None:
            entries = entries[-limit:]
        return entries


def log_retry(operation: str) -> RetryObserver:
    """Observer that reports retries through loguru."""
    def _observe(attempt: int, error: BaseException, delay: float) -> None:
        logger.warning(f"{operation} failed (attempt {attempt}): {error}. Retrying in {delay:g}s")
    return _observe


def chain_observers(*observers: RetryObserver | None) -> RetryObserver:
    """Fan one retry event out to several observers; a failing one does not stop the rest."""
    active = [o for o in observers if o is not None]

    def _observe(attempt: int, error: BaseException, delay: float) -> None:
        for observer in active:
            try:
                observer(attempt, error, delay)
            except Exception as e:
                logger.warning(f"Retry observer raised and was ignored: {e}")
    return _observe
