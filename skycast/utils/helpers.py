"""Utility functions for skycast."""

import re
from datetime import datetime


def compact_timestamp(now: datetime | None = None) -> str:
    """Filesystem-safe timestamp that sorts chronologically, e.g. 20261019T071502_123456."""
    return (now or datetime.now()).strftime("%Y%m%dT%H%M%S_%f")


def safe_filename(name: str, max_len: int = 100) -> str:
    """Convert a label to a safe filename component."""
    name = re.sub(r"[^A-Za-z0-9_\-. ]", "_", name)
    name = re.sub(r"\s+", "_", name.strip())
    return name[:max_len] or "item"


def truncate_string(s: str, max_len: int = 100, suffix: str = "...") -> str:
    """Truncate a string to max length, adding suffix if truncated."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


_MAGIC_EXTENSIONS: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
)


def guess_extension(payload: bytes) -> str:
    """Guess an image file extension from magic bytes; ``bin`` when unknown."""
    for magic, ext in _MAGIC_EXTENSIONS:
        if payload.startswith(magic):
            return ext
    if payload[:4] == b"RIFF" and payload[8:12] == b"WEBP":
        return "webp"
    return "bin"
