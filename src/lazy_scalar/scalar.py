"""Expression handles: the user-facing way to build and consume graphs."""

from __future__ import annotations

import numbers

from .instruction import Program, to_f32
from .operation import Add, BinaryOperation, Constant, Div, Mul, Operation, Sub, evaluate_node, lower_program, render_node


class Scalar:
    """Shared handle around exactly one operation node.

    Copying a handle shares the node, it never duplicates the sub-graph.
    Binary composition builds a new node that references both operand
    handles and leaves the operands untouched. Plain real numbers are
    accepted as operands and become fresh constants.
    """

    __slots__ = ("node",)

    def __init__(self, node: Operation) -> None:
        if not isinstance(node, Operation):
            raise TypeError(f"Scalar wraps an operation node, got {type(node).__name__}")
        self.node = node

    @classmethod
    def constant(cls, value: float) -> "Scalar":
        return cls(Constant(to_f32(value)))

    def add(self, other: "Scalar | float") -> "Scalar":
        return Scalar(Add(self, _coerce(other)))

    def sub(self, other: "Scalar | float") -> "Scalar":
        return Scalar(Sub(self, _coerce(other)))

    def mul(self, other: "Scalar | float") -> "Scalar":
        return Scalar(Mul(self, _coerce(other)))

    def div(self, other: "Scalar | float") -> "Scalar":
        return Scalar(Div(self, _coerce(other)))

    def __add__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _coerce(other).add(self)

    def __sub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.sub(other)

    def __rsub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _coerce(other).sub(self)

    def __mul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.mul(other)

    def __rmul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _coerce(other).mul(self)

    def __truediv__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.div(other)

    def __rtruediv__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _coerce(other).div(self)

    def __copy__(self) -> "Scalar":
        return Scalar(self.node)

    def __deepcopy__(self, memo) -> "Scalar":
        # Nodes are immutable, so deep copies alias them too.
        return Scalar(self.node)

    def same_node(self, other: "Scalar") -> bool:
        return self.node is other.node

    @property
    def is_constant(self) -> bool:
        return isinstance(self.node, Constant)

    def operands(self) -> tuple["Scalar", ...]:
        if isinstance(self.node, BinaryOperation):
            return (self.node.lhs, self.node.rhs)
        return ()

    def evaluate(self) -> float:
        return float(evaluate_node(self.node))

    def lower(self) -> Program:
        return lower_program(self)

    def depth(self) -> int:
        """Longest root-to-leaf path, counting nodes."""
        best = 0
        stack: list[tuple[Scalar, int]] = [(self, 1)]
        seen: dict[Operation, int] = {}
        while stack:
            handle, level = stack.pop()
            if seen.get(handle.node, 0) >= level:
                continue
            seen[handle.node] = level
            best = max(best, level)
            stack.extend((child, level + 1) for child in handle.operands())
        return best

    def node_count(self) -> int:
        """Distinct nodes reachable from this handle."""
        seen: set[Operation] = set()
        stack = [self]
        while stack:
            handle = stack.pop()
            if handle.node in seen:
                continue
            seen.add(handle.node)
            stack.extend(handle.operands())
        return len(seen)

    def __str__(self) -> str:
        return render_node(self.node)

    def __repr__(self) -> str:
        return f"Scalar({render_node(self.node)!r})"


def _is_operand(value: object) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (Scalar, numbers.Real))


def _coerce(value: "Scalar | float") -> Scalar:
    if isinstance(value, Scalar):
        return value
    if _is_operand(value):
        return Scalar.constant(value)
    raise TypeError(f"Cannot combine Scalar with {type(value).__name__}")


def constant(value: float) -> Scalar:
    return Scalar.constant(value)


def evaluate(handle: Scalar) -> float:
    return handle.evaluate()


def lower(handle: Scalar) -> Program:
    return handle.lower()


def render(handle: Scalar) -> str:
    return str(handle)
