"""Durable local storage for undelivered reports."""

from skycast.storage.fallback import FallbackReport, FallbackStore, write_items

__all__ = ["FallbackReport", "FallbackStore", "write_items"]
