"""Execute lowered programs with JAX, eagerly or under `jax.jit`."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp

from .errors import ProgramError
from .instruction import CONSTANT, Program
from .operation import BINARY_OPS, lower_program

if TYPE_CHECKING:
    from .scalar import Scalar

logger = logging.getLogger(__name__)

_USE_JIT_CACHE = os.environ.get("LAZY_SCALAR_DISABLE_JIT_CACHE", "0") != "1"
_COMPILED_PROGRAM_CACHE: dict[str, "CompiledProgram"] = {}
_COMPILED_PROGRAM_CACHE_STATS: dict[str, int] = {"hits": 0, "misses": 0}


def validate_program(program: Program) -> None:
    """Check that every slot is written once and read only after it is written."""
    written: set[int] = set()
    for index, instr in enumerate(program.instructions):
        for slot in instr.operands:
            if slot not in written:
                raise ProgramError(f"Instruction {index} ({instr}) reads slot %{slot} before it is written")
        if instr.destination in written:
            raise ProgramError(f"Instruction {index} ({instr}) writes slot %{instr.destination} a second time")
        written.add(instr.destination)
    if program.result not in written:
        raise ProgramError(f"Result slot %{program.result} is never written")


def run_program(program: Program):
    """Run `program` in order against a slot store; traceable by JAX."""
    store: dict[int, object] = {}
    for instr in program.instructions:
        if instr.op == CONSTANT:
            store[instr.destination] = jnp.asarray(instr.value, dtype=jnp.float32)
            continue
        a, b = instr.operands
        store[instr.destination] = BINARY_OPS[instr.op](store[a], store[b])
    return store[program.result]


def execute_program(program: Program) -> float:
    validate_program(program)
    return float(run_program(program))


@dataclass
class CompiledProgram:
    """Callable wrapper around a lowered program with an optional JIT path."""

    program: Program
    _jit_fn: object | None = field(default=None, init=False, repr=False)
    _call_program: object = field(default=None, init=False, repr=False)
    _transform_stats: dict[str, int] = field(
        default_factory=lambda: {"jit_hits": 0, "jit_misses": 0},
        init=False,
        repr=False,
    )

    def __post_init__(self) -> None:
        validate_program(self.program)
        program = self.program

        def _call_program():
            return run_program(program)

        self._call_program = _call_program

    def __call__(self):
        return self._call_program()

    def jit(self):
        """Return a JIT-compiled zero-argument callable for this program."""
        if _USE_JIT_CACHE and self._jit_fn is not None:
            self._transform_stats["jit_hits"] += 1
            return self._jit_fn
        self._transform_stats["jit_misses"] += 1
        logger.debug("jit-compiling program with %d instructions", len(self.program))
        jitted = jax.jit(self._call_program)
        if _USE_JIT_CACHE:
            self._jit_fn = jitted
        return jitted

    def trace(self):
        """Emit the jaxpr for this program."""
        return jax.make_jaxpr(self._call_program)()

    def transform_cache_stats(self) -> dict[str, float | int]:
        stats = dict(self._transform_stats)
        total = stats["jit_hits"] + stats["jit_misses"]
        stats["hit_rate"] = float(stats["jit_hits"] / total) if total else 0.0
        return stats


def compile_expression(handle: Scalar, *, use_cache: bool = True) -> CompiledProgram:
    """Lower `handle` and wrap the program, reusing wrappers for identical listings."""
    program = lower_program(handle)
    if not use_cache:
        return CompiledProgram(program)
    key = str(program)
    cached = _COMPILED_PROGRAM_CACHE.get(key)
    if cached is not None:
        _COMPILED_PROGRAM_CACHE_STATS["hits"] += 1
        return cached
    _COMPILED_PROGRAM_CACHE_STATS["misses"] += 1
    compiled = CompiledProgram(program)
    _COMPILED_PROGRAM_CACHE[key] = compiled
    return compiled


def compile_cache_stats(*, reset: bool = False) -> dict[str, float | int]:
    hits = _COMPILED_PROGRAM_CACHE_STATS["hits"]
    misses = _COMPILED_PROGRAM_CACHE_STATS["misses"]
    total = hits + misses
    stats: dict[str, float | int] = {
        "hits": hits,
        "misses": misses,
        "entries": len(_COMPILED_PROGRAM_CACHE),
        "hit_rate": float(hits / total) if total else 0.0,
    }
    if reset:
        _COMPILED_PROGRAM_CACHE.clear()
        _COMPILED_PROGRAM_CACHE_STATS["hits"] = 0
        _COMPILED_PROGRAM_CACHE_STATS["misses"] = 0
    return stats
