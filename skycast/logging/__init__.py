"""Error capture for past runs."""

from skycast.logging.error_store import ErrorStore, clear_errors, get_errors, init_error_store

__all__ = ["ErrorStore", "clear_errors", "get_errors", "init_error_store"]
