"""Base contract for acquisition sources."""

from abc import ABC, abstractmethod

from skycast.models import DeliverableItem


class CaptureError(RuntimeError):
    """Acquisition produced no usable items."""


class BaseCapture(ABC):
    """Produces the ordered items a report is built from."""

    name: str = "base"

    @abstractmethod
    async def capture(self) -> list[DeliverableItem]:
        """
        Acquire items.

        Returns:
            Non-empty list of labelled payloads, in report order.

        Raises:
            CaptureError: if nothing could be acquired.
        """
        pass
