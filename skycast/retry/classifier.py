"""Deterministic transient/permanent classification of failures.

Classification is a case-insensitive substring match over
``"{ExceptionType}: {message}"``. Permanent patterns are checked first, so an
error that matches both lists (``"401 Unauthorized ... 503"``) is permanent.
Anything that matches nothing is transient: an unknown error is assumed to be
environmental, and retrying it is cheaper than dropping the run's output.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from skycast.delivery.errors import PermanentDeliveryError, TemporaryDeliveryError


class ErrorClass(str, Enum):
    """Retry decision for a single failure."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"


_PERMANENT_PATTERNS: tuple[str, ...] = (
    "400",
    "401",
    "403",
    "404",
    "unauthorized",
    "forbidden",
    "not found",
    "bad request",
    "authentication failed",
    "invalid",
    "token",
)
_NETWORK_PATTERNS: tuple[str, ...] = (
    "econnreset",
    "connection reset",
    "econnrefused",
    "connection refused",
    "connection error",
    "enotfound",
    "name resolution",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "enetunreach",
    "network is unreachable",
    "network unreachable",
    "ehostunreach",
    "host unreachable",
    "no route to host",
    "socket hang up",
    "network error",
    "fetch failed",
)
_TIMEOUT_PATTERNS: tuple[str, ...] = (
    "etimedout",
    "timeout",
    "timed out",
    "deadline exceeded",
)
_HTTP_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "429",
    "500",
    "502",
    "503",
    "504",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "too many requests",
    "quota exceeded",
    "retry after",
)

_TRANSIENT_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("network", _NETWORK_PATTERNS),
    ("timeout", _TIMEOUT_PATTERNS),
    ("http_transient", _HTTP_TRANSIENT_PATTERNS),
    ("rate_limit", _RATE_LIMIT_PATTERNS),
)


@dataclass(slots=True, frozen=True)
class ErrorClassification:
    """Classification result with the rule that produced it, for diagnostics."""

    error_class: ErrorClass
    matched_rule: str
    matched_pattern: str | None


def explain_error(error: BaseException) -> ErrorClassification:
    """Classify ``error`` and report which rule and pattern decided it."""

    haystack = _normalize(error)

    pattern = _first_match(haystack, _PERMANENT_PATTERNS)
    if pattern is not None:
        return ErrorClassification(ErrorClass.PERMANENT, "permanent", pattern)

    for rule, patterns in _TRANSIENT_RULES:
        pattern = _first_match(haystack, patterns)
        if pattern is not None:
            return ErrorClassification(ErrorClass.TRANSIENT, rule, pattern)

    return ErrorClassification(ErrorClass.TRANSIENT, "fallback_transient", None)


def classify_error(error: BaseException) -> ErrorClass:
    """Default classifier used by every retry policy."""
    return explain_error(error).error_class


def classify_typed_error(error: BaseException) -> ErrorClass:
    """Honour typed delivery errors, falling back to string matching.

    Opt-in (``retry.typedErrors``): a ``TemporaryDeliveryError`` whose message
    happens to contain ``"token"`` is retried here but aborted by
    :func:`classify_error`.
    """
    if isinstance(error, PermanentDeliveryError):
        return ErrorClass.PERMANENT
    if isinstance(error, TemporaryDeliveryError):
        return ErrorClass.TRANSIENT
    return classify_error(error)


def is_transient_error(error: BaseException) -> bool:
    return classify_error(error) is ErrorClass.TRANSIENT


def is_permanent_error(error: BaseException) -> bool:
    return classify_error(error) is ErrorClass.PERMANENT


def _normalize(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}".lower()


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
