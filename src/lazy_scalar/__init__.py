"""lazy-scalar public API."""

from .errors import LazyScalarError, LoweringInvariantError, ProgramError, SlotExhaustedError
from .execution import CompiledProgram, compile_cache_stats, compile_expression, execute_program, validate_program
from .instruction import Instruction, Program, format_f32
from .operation import (
    Add,
    AlreadyCompiled,
    BinaryOperation,
    Compiled,
    Constant,
    Div,
    LoweringSession,
    LowerResult,
    Mul,
    Operation,
    Sub,
)
from .scalar import Scalar, constant, evaluate, lower, render
from .slots import SlotAllocator

__all__ = [
    "Scalar",
    "constant",
    "evaluate",
    "lower",
    "render",
    "Instruction",
    "Program",
    "format_f32",
    "SlotAllocator",
    "LoweringSession",
    "LowerResult",
    "AlreadyCompiled",
    "Compiled",
    "Operation",
    "Constant",
    "BinaryOperation",
    "Add",
    "Sub",
    "Mul",
    "Div",
    "execute_program",
    "validate_program",
    "CompiledProgram",
    "compile_expression",
    "compile_cache_stats",
    "LazyScalarError",
    "LoweringInvariantError",
    "SlotExhaustedError",
    "ProgramError",
]
