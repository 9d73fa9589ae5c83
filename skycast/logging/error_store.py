"""Persistent error log fed by a Loguru sink.

A sink at ERROR level turns each record into one JSON line in
``<data_dir>/logs/errors.jsonl`` so that ``skycast errors`` can show what
went wrong in earlier (often unattended) runs.
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger


@dataclass
class ErrorRecord:
    ts: str
    level: str
    message: str
    where: str
    exception: str | None = None


class ErrorStore:
    def __init__(self, path: Path, max_items: int = 500):
        self.path = path.expanduser()
        self.max_items = max(50, int(max_items))
        self._lock = threading.Lock()

    def ingest(self, record: dict[str, Any]) -> None:
        """Append a Loguru record dict."""
        when = record.get("time")
        ts = when.isoformat() if isinstance(when, datetime) else str(when)
        level = record.get("level")
        exc = record.get("exception")
        rec = ErrorRecord(
            ts=ts,
            level=getattr(level, "name", "ERROR"),
            message=str(record.get("message", "")),
            where=f"{record.get('name') or '?'}:{record.get('function') or '?'}:{record.get('line') or '?'}",
            exception=str(exc) if exc else None,
        )
        self.append(rec)

    def append(self, rec: ErrorRecord) -> None:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(asdict(rec), ensure_ascii=True) + "\n")
            except OSError:
                # Logging here would recurse into this sink.
                return

    def get(self, limit: int = 50) -> list[dict[str, Any]]:
        """Return up to ``limit`` records, newest first."""
        if not self.path.exists():
            return []
        n = max(1, min(int(limit), self.max_items))
        with self._lock:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        records: list[dict[str, Any]] = []
        for line in reversed(lines):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
            if len(records) >= n:
                break
        return records

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)


_STORE: ErrorStore | None = None
_SINK_ID: int | None = None


def init_error_store(path: Path, max_items: int = 500) -> ErrorStore:
    """Install (or reinstall) the ERROR-level sink and return the store."""
    global _STORE, _SINK_ID
    if _STORE is None or _STORE.path != path.expanduser():
        _STORE = ErrorStore(path=path, max_items=max_items)

    if _SINK_ID is not None:
        # May already be gone after logger.remove().
        try:
            logger.remove(_SINK_ID)
        except ValueError:
            pass

    def _sink(message):  # type: ignore[no-untyped-def]
        if _STORE is not None:
            _STORE.ingest(message.record)

    _SINK_ID = logger.add(_sink, level="ERROR", backtrace=True, diagnose=False)
    return _STORE


def get_errors(limit: int = 50) -> list[dict[str, Any]]:
    if _STORE is None:
        return []
    return _STORE.get(limit=limit)


def clear_errors() -> None:
    if _STORE is not None:
        _STORE.clear()
