"""Three-address instruction IR and its canonical text form."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
import numbers

import numpy as np

CONSTANT = "constant"
BINARY_OPCODES = ("add", "sub", "mul", "div")
OPCODES = (CONSTANT, *BINARY_OPCODES)


def to_f32(value: object) -> float:
    """Round a real number to the nearest 32-bit float, returned as a Python float."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(f"Expected a real number, got {type(value).__name__}")
    with np.errstate(over="ignore"):
        return float(np.float32(float(value)))


def format_f32(value: float) -> str:
    """Shortest positional text that round-trips `value` as a 32-bit float.

    Integral values carry no fractional part (`1`, not `1.0`); non-finite
    values render as `inf`, `-inf` and `NaN`.
    """
    with np.errstate(over="ignore"):
        v = np.float32(value)
    if np.isnan(v):
        return "NaN"
    if np.isinf(v):
        return "inf" if v > 0 else "-inf"
    return np.format_float_positional(v, unique=True, trim="-")


@dataclass(frozen=True)
class Instruction:
    """One three-address operation writing `destination`."""

    destination: int
    op: str
    operands: tuple[int, ...] = ()
    value: float | None = None

    def __post_init__(self) -> None:
        if self.op not in OPCODES:
            raise ValueError(f"Unknown opcode {self.op!r}; expected one of {', '.join(OPCODES)}")
        if self.destination < 0:
            raise ValueError(f"Destination slot must be non-negative, got {self.destination}")
        if self.op == CONSTANT:
            if self.operands or self.value is None:
                raise ValueError("constant instructions carry a value and no operands")
            return
        if len(self.operands) != 2 or self.value is not None:
            raise ValueError(f"{self.op} instructions carry exactly two operand slots")
        if any(slot < 0 for slot in self.operands):
            raise ValueError(f"Operand slots must be non-negative, got {self.operands}")

    @property
    def is_constant(self) -> bool:
        return self.op == CONSTANT

    def __str__(self) -> str:
        if self.op == CONSTANT:
            return f"%{self.destination}: constant {format_f32(self.value)}"
        a, b = self.operands
        return f"%{self.destination}: {self.op} %{a} %{b}"


def constant(value: float, destination: int) -> Instruction:
    return Instruction(destination=destination, op=CONSTANT, value=to_f32(value))


def binary(op: str, a: int, b: int, destination: int) -> Instruction:
    if op not in BINARY_OPCODES:
        raise ValueError(f"Unknown binary opcode {op!r}")
    return Instruction(destination=destination, op=op, operands=(a, b))


def add(a: int, b: int, destination: int) -> Instruction:
    return binary("add", a, b, destination)


def sub(a: int, b: int, destination: int) -> Instruction:
    return binary("sub", a, b, destination)


def mul(a: int, b: int, destination: int) -> Instruction:
    return binary("mul", a, b, destination)


def div(a: int, b: int, destination: int) -> Instruction:
    return binary("div", a, b, destination)


@dataclass(frozen=True)
class Program:
    """Ordered instruction list plus the slot holding the final result.

    `str(program)` is the listing consumers compare against: one line per
    instruction followed by `ret <result>`.
    """

    instructions: tuple[Instruction, ...]
    result: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "instructions", tuple(self.instructions))

    def __len__(self) -> int:
        return len(self.instructions)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def destinations(self) -> tuple[int, ...]:
        return tuple(instr.destination for instr in self.instructions)

    def lines(self) -> list[str]:
        return [str(instr) for instr in self.instructions] + [f"ret {self.result}"]

    def __str__(self) -> str:
        return "\n".join(self.lines())
