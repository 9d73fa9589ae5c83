from __future__ import annotations

import pytest

from skycast.delivery.errors import PermanentDeliveryError, TemporaryDeliveryError
from skycast.retry.classifier import (
    ErrorClass,
    classify_error,
    classify_typed_error,
    explain_error,
    is_permanent_error,
    is_transient_error,
)


@pytest.mark.parametrize(
    "message",
    [
        "HTTP 401 Unauthorized",
        "403 Forbidden",
        "chat not found",
        "Bad Request: wrong file identifier",
        "Invalid API key",
        "token rejected",
    ],
)
def test_permanent_messages(message: str) -> None:
    assert classify_error(RuntimeError(message)) is ErrorClass.PERMANENT


@pytest.mark.parametrize(
    "message",
    [
        "ECONNRESET",
        "socket hang up",
        "request timed out",
        "HTTP 503 Service Unavailable",
        "Too Many Requests",
        "something odd happened",
    ],
)
def test_transient_messages(message: str) -> None:
    assert classify_error(RuntimeError(message)) is ErrorClass.TRANSIENT


def test_permanent_wins_over_transient() -> None:
    result = explain_error(RuntimeError("401 Unauthorized after 503"))
    assert result.error_class is ErrorClass.PERMANENT
    assert result.matched_rule == "permanent"


def test_matching_is_case_insensitive() -> None:
    assert is_permanent_error(RuntimeError("FORBIDDEN"))
    assert is_transient_error(RuntimeError("Rate Limit reached"))


def test_exception_type_name_is_matched() -> None:
    assert classify_error(TimeoutError()) is ErrorClass.TRANSIENT
    assert explain_error(TimeoutError()).matched_rule == "timeout"


def test_unknown_error_falls_back_to_transient() -> None:
    result = explain_error(RuntimeError("disk quota weirdness"))
    assert result.error_class is ErrorClass.TRANSIENT
    assert result.matched_rule == "fallback_transient"
    assert result.matched_pattern is None


def test_explain_reports_matched_pattern() -> None:
    result = explain_error(RuntimeError("upstream returned 502"))
    assert result.matched_rule == "http_transient"
    assert result.matched_pattern == "502"


def test_typed_classifier_prefers_exception_type() -> None:
    temporary = TemporaryDeliveryError("bot token refresh pending")
    assert classify_error(temporary) is ErrorClass.PERMANENT
    assert classify_typed_error(temporary) is ErrorClass.TRANSIENT

    permanent = PermanentDeliveryError("media group too large")
    assert classify_error(permanent) is ErrorClass.TRANSIENT
    assert classify_typed_error(permanent) is ErrorClass.PERMANENT


def test_documented_examples() -> None:
    assert classify_error(RuntimeError("Error: 503 Service Unavailable")) is ErrorClass.TRANSIENT
    assert classify_error(RuntimeError("401 Unauthorized: invalid token")) is ErrorClass.PERMANENT


def test_typed_classifier_falls_back_to_strings() -> None:
    assert classify_typed_error(RuntimeError("404 not found")) is ErrorClass.PERMANENT
    assert classify_typed_error(RuntimeError("connection refused")) is ErrorClass.TRANSIENT
