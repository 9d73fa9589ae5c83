"""Delivery transports and batching."""

from skycast.delivery.base import BaseDelivery
from skycast.delivery.batching import MAX_BATCH_SIZE, split_batches
from skycast.delivery.errors import (
    OutboundDeliveryError,
    PermanentDeliveryError,
    TemporaryDeliveryError,
)

__all__ = [
    "BaseDelivery",
    "MAX_BATCH_SIZE",
    "OutboundDeliveryError",
    "PermanentDeliveryError",
    "TemporaryDeliveryError",
    "split_batches",
]
