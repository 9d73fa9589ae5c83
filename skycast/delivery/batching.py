"""Split deliverable items into transport-sized groups."""

from typing import Sequence, TypeVar

T = TypeVar("T")

# Telegram accepts at most 10 photos per media group.
MAX_BATCH_SIZE = 10


def split_batches(items: Sequence[T], capacity: int) -> list[list[T]]:
    """Partition ``items`` into contiguous batches of at most ``capacity``.

    A non-positive capacity, or one at least as large as the input, yields a
    single batch. Empty input yields no batches. Concatenating the result in
    order reproduces ``items``.
    """
    if not items:
        return []
    if capacity <= 0 or capacity >= len(items):
        return [list(items)]
    return [list(items[i:i + capacity]) for i in range(0, len(items), capacity)]
