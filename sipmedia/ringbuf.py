"""Fixed-size ring buffer that drops the oldest elements on overflow."""

from __future__ import annotations

from collections import deque
from typing import Deque, Generic, Iterable, Optional, Tuple, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """A FIFO of bounded size; writing past capacity discards the oldest items."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("ring buffer size must not be negative")
        self._items: Deque[T] = deque(maxlen=size)

    def size(self) -> int:
        """Capacity of the buffer."""
        return self._items.maxlen or 0

    def __len__(self) -> int:
        return len(self._items)

    def _full(self) -> bool:
        return len(self._items) >= self.size()

    def try_peek(self) -> Tuple[Optional[T], bool]:
        """Return the first element without consuming it, and whether there was one."""
        if not self._items:
            return None, False
        return self._items[0], True

    def peek(self) -> Optional[T]:
        """Return the first element without consuming it, or None if empty."""
        return self.try_peek()[0]

    def try_pop(self) -> Tuple[Optional[T], bool]:
        """Consume the first element, returning it and whether there was one."""
        if not self._items:
            return None, False
        return self._items.popleft(), True

    def pop(self) -> Optional[T]:
        """Consume and return the first element, or None if empty."""
        return self.try_pop()[0]

    def try_push(self, value: T) -> bool:
        """Append a value unless the buffer is full."""
        if self._full():
            return False
        self._items.append(value)
        return True

    def push(self, value: T) -> None:
        """Append a value, discarding the oldest one if the buffer is full."""
        self._items.append(value)

    def read(self, count: int) -> list[T]:
        """Consume up to ``count`` elements.

        Raises EOFError if elements were requested but the buffer is empty.
        """
        if count <= 0:
            return []
        if not self._items:
            raise EOFError("ring buffer is empty")
        n = min(count, len(self._items))
        return [self._items.popleft() for _ in range(n)]

    def write(self, items: Iterable[T]) -> int:
        """Append items, discarding the oldest ones that no longer fit.

        Returns the number of items given, including any that were dropped.
        """
        values = list(items)
        self._items.extend(values)
        return len(values)