"""
Fixed-size slicing of work lists.

Consumers pull one slice at a time so only the current batch of extracted
text is held in memory.
"""

from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


class BatchIterator:
    """
    Iterator over consecutive fixed-size slices of a sequence.

    The last slice may be shorter. An empty sequence yields nothing.
    """

    def __init__(self, items: Sequence[T], batch_size: int):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._items = items
        self._batch_size = batch_size
        self._position = 0

    def __iter__(self) -> "BatchIterator":
        return self

    def __next__(self) -> List[T]:
        if self._position >= len(self._items):
            raise StopIteration
        start = self._position
        self._position += self._batch_size
        return list(self._items[start:self._position])

    def __len__(self) -> int:
        """Total number of batches, independent of iteration progress."""
        return -(-len(self._items) // self._batch_size)


def iter_batches(items: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    """Return a BatchIterator over items."""
    return BatchIterator(items, batch_size)
