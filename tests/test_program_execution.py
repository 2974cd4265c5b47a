from __future__ import annotations

import importlib.util
import math
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


def _expressions():
    from lazy_scalar import constant

    add = constant(1).add(constant(2))
    sub = constant(3).sub(constant(4))
    x = constant(0.5)
    return [
        constant(1).add(constant(2)),
        constant(6).div(constant(3)),
        x.mul(x).sub(x),
        (add * sub) + (add / (constant(5) * add)),
        constant(1.5).div(constant(7)).mul(constant(-3)),
    ]


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for program execution tests")
class ExecuteProgramTests(unittest.TestCase):
    def test_execution_matches_direct_evaluation(self) -> None:
        from lazy_scalar import execute_program, lower

        for expr in _expressions():
            with self.subTest(expr=str(expr)):
                self.assertAlmostEqual(execute_program(lower(expr)), expr.evaluate(), places=6)

    def test_division_by_zero_executes_to_infinity(self) -> None:
        from lazy_scalar import constant, execute_program, lower

        self.assertEqual(execute_program(lower(constant(1).div(constant(0)))), math.inf)

    def test_malformed_programs_raise_program_error(self) -> None:
        from lazy_scalar import Program, ProgramError, execute_program
        from lazy_scalar.instruction import add, constant

        cases = [
            Program(instructions=(constant(1.0, 0), add(0, 1, 2)), result=2),
            Program(instructions=(constant(1.0, 0), constant(2.0, 0)), result=0),
            Program(instructions=(constant(1.0, 0),), result=3),
        ]
        for program in cases:
            with self.subTest(program=str(program)):
                with self.assertRaises(ProgramError):
                    execute_program(program)

    def test_hand_built_program_with_nonzero_start(self) -> None:
        from lazy_scalar import Program, execute_program
        from lazy_scalar.instruction import constant, mul

        program = Program(instructions=(constant(4.0, 10), constant(2.5, 11), mul(10, 11, 12)), result=12)
        self.assertEqual(execute_program(program), 10.0)


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for program execution tests")
class CompiledProgramTests(unittest.TestCase):
    def test_call_and_jit_agree_with_evaluate(self) -> None:
        from lazy_scalar import CompiledProgram, lower

        for expr in _expressions():
            with self.subTest(expr=str(expr)):
                compiled = CompiledProgram(lower(expr))
                self.assertAlmostEqual(float(compiled()), expr.evaluate(), places=6)
                self.assertAlmostEqual(float(compiled.jit()()), expr.evaluate(), places=5)

    def test_jit_callable_is_cached(self) -> None:
        from lazy_scalar import CompiledProgram, constant, lower

        compiled = CompiledProgram(lower(constant(2).mul(constant(3))))
        first = compiled.jit()
        second = compiled.jit()
        self.assertIs(first, second)
        stats = compiled.transform_cache_stats()
        self.assertEqual(stats["jit_misses"], 1)
        self.assertEqual(stats["jit_hits"], 1)
        self.assertAlmostEqual(stats["hit_rate"], 0.5)

    def test_disabled_jit_cache_compiles_every_call(self) -> None:
        from unittest import mock

        from lazy_scalar import CompiledProgram, constant, execution, lower

        compiled = CompiledProgram(lower(constant(2).mul(constant(3))))
        with mock.patch.object(execution, "_USE_JIT_CACHE", False):
            first = compiled.jit()
            second = compiled.jit()
        self.assertIsNot(first, second)
        stats = compiled.transform_cache_stats()
        self.assertEqual(stats["jit_misses"], 2)
        self.assertEqual(stats["jit_hits"], 0)
        self.assertEqual(float(second()), 6.0)

    def test_trace_emits_jaxpr_with_program_primitives(self) -> None:
        from lazy_scalar import CompiledProgram, constant, lower

        jaxpr = CompiledProgram(lower(constant(1).add(constant(2)))).trace()
        self.assertIn("add", str(jaxpr))

    def test_compiled_program_validates_on_construction(self) -> None:
        from lazy_scalar import CompiledProgram, Program, ProgramError
        from lazy_scalar.instruction import add

        with self.assertRaises(ProgramError):
            CompiledProgram(Program(instructions=(add(0, 1, 2),), result=2))

    def test_compile_expression_reuses_identical_listings(self) -> None:
        from lazy_scalar import compile_cache_stats, compile_expression, constant

        compile_cache_stats(reset=True)
        first = compile_expression(constant(2).add(constant(3)))
        second = compile_expression(constant(2).add(constant(3)))
        third = compile_expression(constant(2).sub(constant(3)))
        self.assertIs(first, second)
        self.assertIsNot(first, third)
        stats = compile_cache_stats(reset=True)
        self.assertEqual(stats["hits"], 1)
        self.assertEqual(stats["misses"], 2)
        self.assertEqual(stats["entries"], 2)
        self.assertEqual(compile_cache_stats()["entries"], 0)

    def test_compile_expression_without_cache(self) -> None:
        from lazy_scalar import compile_cache_stats, compile_expression, constant

        compile_cache_stats(reset=True)
        a = compile_expression(constant(1), use_cache=False)
        b = compile_expression(constant(1), use_cache=False)
        self.assertIsNot(a, b)
        self.assertEqual(a.program, b.program)
        self.assertEqual(compile_cache_stats()["misses"], 0)


if __name__ == "__main__":
    unittest.main()
