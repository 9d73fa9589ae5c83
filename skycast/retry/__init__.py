"""Retry engine: failure classification, backoff policies and the audit trail."""

from skycast.retry.audit import RetryAuditLog, chain_observers, log_retry
from skycast.retry.classifier import (
    ErrorClass,
    classify_error,
    classify_typed_error,
    explain_error,
    is_permanent_error,
    is_transient_error,
)
from skycast.retry.policy import (
    Aborted,
    Exhausted,
    RetryOutcome,
    RetryPolicy,
    Succeeded,
    execute,
    execute_or_raise,
)

__all__ = [
    "Aborted",
    "ErrorClass",
    "Exhausted",
    "RetryAuditLog",
    "RetryOutcome",
    "RetryPolicy",
    "Succeeded",
    "chain_observers",
    "classify_error",
    "classify_typed_error",
    "execute",
    "execute_or_raise",
    "explain_error",
    "is_permanent_error",
    "is_transient_error",
    "log_retry",
]
