"""Value types shared by the capture, analysis, delivery and storage layers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DeliverableItem:
    """One captured artifact: a human-readable label and its binary payload."""
    label: str
    payload: bytes

    def __repr__(self) -> str:
        return f"DeliverableItem(label={self.label!r}, size={len(self.payload)})"
