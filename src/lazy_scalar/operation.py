"""Operation graph nodes with direct evaluation and memoized lowering.

The node set is closed: `Constant` leaves and the four binary variants
`Add`, `Sub`, `Mul` and `Div`. Binary nodes hold `Scalar` handles to their
operands, so one sub-expression can be shared by several parents and the
graph is a DAG rather than a tree.

Lowering compiles each distinct node at most once per `LoweringSession`. The
session owns both the slot allocator and the memo map; nodes themselves are
immutable.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, ClassVar, Union

import jax.numpy as jnp

from . import instruction as ir
from .errors import LoweringInvariantError
from .instruction import Instruction, Program
from .slots import SlotAllocator

if TYPE_CHECKING:
    from .scalar import Scalar

logger = logging.getLogger(__name__)

BINARY_OPS: dict[str, Callable] = {
    "add": jnp.add,
    "sub": jnp.subtract,
    "mul": jnp.multiply,
    "div": jnp.divide,
}


@dataclass(frozen=True, eq=False)
class Operation:
    """Base class for graph nodes. Equality and hashing are by identity."""


@dataclass(frozen=True, eq=False)
class Constant(Operation):
    value: float


@dataclass(frozen=True, eq=False)
class BinaryOperation(Operation):
    op: ClassVar[str]
    symbol: ClassVar[str]

    lhs: Scalar
    rhs: Scalar


@dataclass(frozen=True, eq=False)
class Add(BinaryOperation):
    op: ClassVar[str] = "add"
    symbol: ClassVar[str] = "+"


@dataclass(frozen=True, eq=False)
class Sub(BinaryOperation):
    op: ClassVar[str] = "sub"
    symbol: ClassVar[str] = "-"


@dataclass(frozen=True, eq=False)
class Mul(BinaryOperation):
    op: ClassVar[str] = "mul"
    symbol: ClassVar[str] = "*"


@dataclass(frozen=True, eq=False)
class Div(BinaryOperation):
    op: ClassVar[str] = "div"
    symbol: ClassVar[str] = "/"


def _unknown_node(node: object) -> TypeError:
    return TypeError(f"Unknown operation node {type(node).__name__}")


def evaluate_node(node: Operation):
    """Interpret `node` directly as a float32 JAX scalar.

    Pure and unmemoized: a shared operand is recomputed for every parent that
    reaches it. Recursion depth equals graph depth.
    """
    if isinstance(node, Constant):
        return jnp.asarray(node.value, dtype=jnp.float32)
    if isinstance(node, BinaryOperation):
        left = evaluate_node(node.lhs.node)
        right = evaluate_node(node.rhs.node)
        return BINARY_OPS[node.op](left, right)
    raise _unknown_node(node)


def render_node(node: Operation) -> str:
    if isinstance(node, Constant):
        return ir.format_f32(node.value)
    if isinstance(node, BinaryOperation):
        return f"({render_node(node.lhs.node)} {node.symbol} {render_node(node.rhs.node)})"
    raise _unknown_node(node)


@dataclass(frozen=True)
class AlreadyCompiled:
    """The node was compiled earlier in the session; reuse `slot`."""

    slot: int

    @property
    def instructions(self) -> tuple[Instruction, ...]:
        return ()


@dataclass(frozen=True)
class Compiled:
    """First compilation of a node: `instructions` produce `slot`."""

    instructions: tuple[Instruction, ...]
    slot: int


LowerResult = Union[AlreadyCompiled, Compiled]


def lower_node(node: Operation, session: LoweringSession) -> LowerResult:
    slot = session._recall(node)
    if slot is not None:
        return AlreadyCompiled(slot)

    if isinstance(node, Constant):
        slot = session.allocator.next()
        session._record(node, slot)
        return Compiled((ir.constant(node.value, slot),), slot)

    if isinstance(node, BinaryOperation):
        # Left is lowered completely before right; this fixes slot order.
        left = lower_node(node.lhs.node, session)
        right = lower_node(node.rhs.node, session)
        slot = session.allocator.next()
        session._record(node, slot)
        emitted = (*left.instructions, *right.instructions, ir.binary(node.op, left.slot, right.slot, slot))
        return Compiled(emitted, slot)

    raise _unknown_node(node)


class LoweringSession:
    """One memo scope for lowering: a slot allocator plus a per-node memo.

    Every root lowered through the same session shares the memo, so a node
    reachable from several roots is emitted once and later fragments refer
    to slots defined by earlier ones. `lower()` at module level opens a fresh
    session per call, which keeps each returned program self-contained.
    """

    def __init__(self, allocator: SlotAllocator | None = None) -> None:
        self.allocator = allocator if allocator is not None else SlotAllocator()
        self.instructions: list[Instruction] = []
        self._memo: dict[Operation, int] = {}
        self._journal: list[Operation] = []

    def _recall(self, node: Operation) -> int | None:
        return self._memo.get(node)

    def _record(self, node: Operation, slot: int) -> None:
        if node in self._memo:
            raise LoweringInvariantError(
                f"{type(node).__name__} node compiled twice (slots %{self._memo[node]} and %{slot})"
            )
        self._memo[node] = slot
        self._journal.append(node)

    def _rollback(self, mark: int, slot: int) -> None:
        while len(self._journal) > mark:
            del self._memo[self._journal.pop()]
        self.allocator.rewind(slot)

    def __len__(self) -> int:
        return len(self._memo)

    def is_compiled(self, handle: Scalar) -> bool:
        return handle.node in self._memo

    def slot_of(self, handle: Scalar) -> int | None:
        return self._memo.get(handle.node)

    def lower(self, handle: Scalar) -> LowerResult:
        """Lower one root, returning the raw result.

        Inside a session an `AlreadyCompiled` root is an ordinary outcome: the
        root was reached from a root lowered earlier.
        """
        mark = len(self._journal)
        first_slot = self.allocator.peek()
        try:
            result = lower_node(handle.node, self)
        except Exception:
            # A failed root leaves no memo entries or slots behind.
            self._rollback(mark, first_slot)
            raise
        if isinstance(result, Compiled):
            self.instructions.extend(result.instructions)
        logger.debug(
            "lowered %s root into %%%d (%d new instructions, %d nodes in session)",
            type(handle.node).__name__,
            result.slot,
            len(result.instructions),
            len(self._memo),
        )
        return result

    def program(self, handle: Scalar) -> Program:
        """Lower `handle` as a root that must not have been compiled yet."""
        result = self.lower(handle)
        if isinstance(result, AlreadyCompiled):
            raise LoweringInvariantError(
                f"Root expression was already compiled into slot %{result.slot} before its own lowering"
            )
        return Program(instructions=result.instructions, result=result.slot)

    def combined(self, handle: Scalar) -> Program:
        """All instructions emitted so far, returning `handle`'s slot.

        `handle` is lowered first if the session has not compiled it yet.
        """
        slot = self.slot_of(handle)
        if slot is None:
            slot = self.lower(handle).slot
        return Program(instructions=tuple(self.instructions), result=slot)


def lower_program(handle: Scalar, *, allocator: SlotAllocator | None = None) -> Program:
    """Lower `handle` in a fresh session into a self-contained program."""
    return LoweringSession(allocator).program(handle)
