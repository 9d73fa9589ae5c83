"""Local fallback storage for reports that could not be delivered.

Each failed run gets its own timestamped directory under the store root::

    20261019T071502_123456/
        analysis.txt
        error.log
        items/001_<label>.jpg ...
        items_metadata.json
        README.txt

Directories are created exclusively, so saving twice never overwrites an
earlier report. Nothing here retries: local disk errors are raised to the
caller.
"""

from __future__ import annotations

import json
import shutil
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from loguru import logger

from skycast.models import DeliverableItem
from skycast.utils.helpers import compact_timestamp, guess_extension, safe_filename

ANALYSIS_FILE = "analysis.txt"
ERROR_FILE = "error.log"
ITEMS_DIR = "items"
METADATA_FILE = "items_metadata.json"
README_FILE = "README.txt"


@dataclass
class FallbackReport:
    """A saved report as read back from disk."""
    report_id: str
    path: Path
    text: str
    error: str
    item_count: int
    items: list[dict[str, Any]] = field(default_factory=list)


def write_items(directory: Path, items: Sequence[DeliverableItem]) -> list[dict[str, Any]]:
    """Write items as ``NNN_<label>.<ext>`` files; return their index entries."""
    directory.mkdir(parents=True, exist_ok=True)
    entries: list[dict[str, Any]] = []
    for index, item in enumerate(items, start=1):
        filename = f"{index:03d}_{safe_filename(item.label)}.{guess_extension(item.payload)}"
        (directory / filename).write_bytes(item.payload)
        entries.append({"index": index, "label": item.label, "filename": filename})
    return entries


def format_error(error: BaseException, now: datetime | None = None) -> str:
    """Human-readable error summary with traceback, as written to ``error.log``."""
    lines = [
        f"Timestamp: {(now or datetime.now()).isoformat()}",
        f"Error type: {type(error).__name__}",
        f"Error: {error}",
        "",
    ]
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
    if tb:
        lines += ["Traceback:", tb, ""]
    lines += [
        "This report was saved locally because it could not be delivered.",
        "Review the analysis and items in this directory and resend manually if needed.",
    ]
    return "\n".join(lines) + "\n"


def _readme(report_dir: Path, error: BaseException, item_count: int, now: datetime) -> str:
    rule = "=" * 64
    return "\n".join([
        rule,
        "UNDELIVERED REPORT - SAVED LOCALLY",
        rule,
        "",
        f"Timestamp: {now.isoformat()}",
        f"Report directory: {report_dir}",
        "",
        "CONTENTS:",
        f"  - {ANALYSIS_FILE:<22}: report text",
        f"  - {ERROR_FILE:<22}: error that stopped delivery",
        f"  - {ITEMS_DIR + '/':<22}: {item_count} captured item(s), in report order",
        f"  - {METADATA_FILE:<22}: index, label and filename of each item",
        "",
        "REASON FOR LOCAL SAVE:",
        f"  {error}",
        "",
        "NEXT STEPS:",
        "  1. Review the text and items",
        "  2. Check error.log for details",
        "  3. Resend manually if still relevant",
        "  4. Fix the delivery problem (token, chat id, network)",
        "",
        rule,
        "",
    ])


def _report_sort_key(report_id: str) -> tuple[str, int]:
    # "<timestamp>-<n>" collision suffixes sort numerically, so -10 comes after -9.
    base, _, suffix = report_id.partition("-")
    return base, int(suffix) if suffix.isdigit() else 0


class FallbackStore:
    """Create, list, read and delete saved reports under ``root``."""

    def __init__(self, root: Path):
        self.root = root.expanduser()

    def _report_dir(self, report_id: str) -> Path:
        if not report_id or Path(report_id).name != report_id or report_id in (".", ".."):
            raise ValueError(f"Invalid report id: {report_id!r}")
        return self.root / report_id

    def _create_dir(self, now: datetime) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        base = compact_timestamp(now)
        candidate = self.root / base
        suffix = 0
        while True:
            try:
                candidate.mkdir()
                return candidate
            except FileExistsError:
                suffix += 1
                candidate = self.root / f"{base}-{suffix}"

    def save(self, text: str, items: Sequence[DeliverableItem], error: BaseException) -> Path:
        """Persist an undelivered report and return its directory.

        Raises:
            OSError: if the report could not be written.
        """
        now = datetime.now()
        report_dir = self._create_dir(now)

        (report_dir / ANALYSIS_FILE).write_text(text, encoding="utf-8")
        (report_dir / ERROR_FILE).write_text(format_error(error, now), encoding="utf-8")
        entries = write_items(report_dir / ITEMS_DIR, items)
        (report_dir / METADATA_FILE).write_text(
            json.dumps(entries, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        (report_dir / README_FILE).write_text(
            _readme(report_dir, error, len(items), now), encoding="utf-8"
        )

        logger.info(f"Report saved to {report_dir} ({len(items)} items)")
        return report_dir

    def list_reports(self) -> list[str]:
        """Report ids, most recent first. Directories without a report text are skipped."""
        if not self.root.exists():
            return []
        ids = [p.name for p in self.root.iterdir() if p.is_dir() and (p / ANALYSIS_FILE).is_file()]
        return sorted(ids, key=_report_sort_key, reverse=True)

    def load(self, report_id: str) -> FallbackReport | None:
        """Read a saved report; ``None`` if it is missing or incomplete."""
        report_dir = self._report_dir(report_id)
        analysis_file = report_dir / ANALYSIS_FILE
        error_file = report_dir / ERROR_FILE
        if not analysis_file.is_file() or not error_file.is_file():
            return None

        entries: list[dict[str, Any]] = []
        metadata_file = report_dir / METADATA_FILE
        if metadata_file.is_file():
            try:
                loaded = json.loads(metadata_file.read_text(encoding="utf-8"))
                if isinstance(loaded, list):
                    entries = loaded
            except json.JSONDecodeError as e:
                logger.warning(f"Corrupt metadata in {metadata_file}: {e}")

        items_dir = report_dir / ITEMS_DIR
        if entries:
            item_count = len(entries)
        elif items_dir.is_dir():
            item_count = sum(1 for p in items_dir.iterdir() if p.is_file())
        else:
            item_count = 0

        return FallbackReport(
            report_id=report_id,
            path=report_dir,
            text=analysis_file.read_text(encoding="utf-8"),
            error=error_file.read_text(encoding="utf-8"),
            item_count=item_count,
            items=entries,
        )

    def delete(self, report_id: str) -> bool:
        """Remove a saved report. Returns False if it did not exist."""
        report_dir = self._report_dir(report_id)
        if not report_dir.is_dir():
            return False
        shutil.rmtree(report_dir)
        logger.info(f"Deleted report {report_id}")
        return True
