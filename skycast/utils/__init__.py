"""Utility functions for skycast."""

from skycast.utils.helpers import compact_timestamp, guess_extension, safe_filename, truncate_string

__all__ = ["compact_timestamp", "guess_extension", "safe_filename", "truncate_string"]
