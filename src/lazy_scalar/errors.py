"""Structured error types for lowering and program execution."""

from __future__ import annotations


class LazyScalarError(Exception):
    """Base class for structured lazy-scalar errors."""


class LoweringInvariantError(LazyScalarError):
    """A memoization invariant was broken during lowering.

    This signals a defect in the lowering pass (for example a root node that
    reports itself as already compiled), never bad user input.
    """


class SlotExhaustedError(LoweringInvariantError):
    """The slot allocator was asked for more slots than its capacity."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Slot allocator exhausted after {capacity} slots")
        self.capacity = capacity


class ProgramError(LazyScalarError):
    """A three-address program is not executable as written."""
