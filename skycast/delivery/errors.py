"""Delivery errors for outbound messages.

Transports should raise these so the retry engine can decide whether to retry.
Messages keep the words the string classifier matches on, so classification
stays correct even when typed classification is disabled.
"""


class OutboundDeliveryError(RuntimeError):
    """Base class for outbound delivery errors."""


class TemporaryDeliveryError(OutboundDeliveryError):
    """A transient failure (network, timeout, rate limit). Safe to retry.

    ``retry_after`` is the server's requested wait in seconds, if it sent one.
    The retry engine never waits less than that before the next attempt.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class PermanentDeliveryError(OutboundDeliveryError):
    """A permanent failure (bad chat id, revoked token, forbidden). Do not retry."""
