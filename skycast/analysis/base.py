"""Base contract for report generation."""

from abc import ABC, abstractmethod
from typing import Sequence

from skycast.models import DeliverableItem


class AnalysisError(RuntimeError):
    """The model answered but produced no usable text."""


class BaseAnalyzer(ABC):
    """Turns captured items plus a prompt into report text."""

    @abstractmethod
    async def analyze(self, items: Sequence[DeliverableItem], prompt: str) -> str:
        pass
