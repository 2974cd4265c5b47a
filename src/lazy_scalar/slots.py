"""Monotonic virtual slot allocation for a single lowering session."""

from __future__ import annotations

import os

from .errors import SlotExhaustedError

_MISSING = object()


def _parse_capacity(raw: str) -> int | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        capacity = int(raw)
    except ValueError:
        raise ValueError(f"LAZY_SCALAR_MAX_SLOTS must be an integer, got {raw!r}") from None
    if capacity <= 0:
        raise ValueError(f"LAZY_SCALAR_MAX_SLOTS must be positive, got {capacity}")
    return capacity


DEFAULT_CAPACITY = _parse_capacity(os.environ.get("LAZY_SCALAR_MAX_SLOTS", ""))


class SlotAllocator:
    """Hands out fresh, never-reused slot numbers in increasing order.

    One allocator backs exactly one lowering session. `capacity` bounds the
    number of slots it will ever hand out; it defaults to the
    `LAZY_SCALAR_MAX_SLOTS` environment setting and `None` means unbounded.
    """

    def __init__(self, start: int = 0, capacity: int | None | object = _MISSING) -> None:
        if start < 0:
            raise ValueError(f"Slot numbers are non-negative, got start={start}")
        if capacity is _MISSING:
            capacity = DEFAULT_CAPACITY
        if capacity is not None and capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.start = start
        self.capacity = capacity
        self._next = start

    @property
    def allocated(self) -> int:
        return self._next - self.start

    def peek(self) -> int:
        """Return the slot the next call to `next()` would hand out."""
        return self._next

    def rewind(self, slot: int) -> None:
        """Give back every slot from `slot` onwards after a failed lowering."""
        if not self.start <= slot <= self._next:
            raise ValueError(f"Cannot rewind to %{slot}; allocated range is [{self.start}, {self._next})")
        self._next = slot

    def next(self) -> int:
        if self.capacity is not None and self.allocated >= self.capacity:
            raise SlotExhaustedError(self.capacity)
        slot = self._next
        self._next += 1
        return slot

    def __iter__(self) -> "SlotAllocator":
        return self

    def __next__(self) -> int:
        return self.next()

    def __repr__(self) -> str:
        return f"SlotAllocator(next={self._next}, allocated={self.allocated}, capacity={self.capacity})"
