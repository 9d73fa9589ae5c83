"""Base contract for delivery transports."""

from abc import ABC, abstractmethod
from typing import Sequence

from skycast.models import DeliverableItem


class BaseDelivery(ABC):
    """
    Destination for a finished report.

    Implementations should raise ``TemporaryDeliveryError`` or
    ``PermanentDeliveryError`` so the retry engine classifies failures well.
    """

    name: str = "base"

    async def __aenter__(self) -> "BaseDelivery":
        return self

    async def __aexit__(self, *exc) -> None:
        pass

    @abstractmethod
    async def send_batch(self, items: Sequence[DeliverableItem], offset: int = 0) -> None:
        """
        Send a group of items together.

        Args:
            items: The batch, in report order.
            offset: Position of the first item within the whole report.
        """
        pass

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send a text message."""
        pass
