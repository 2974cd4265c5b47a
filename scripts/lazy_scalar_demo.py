"""Build a small shared-operand expression, evaluate it, and print its lowering."""

from __future__ import annotations

import argparse
import logging

from lazy_scalar import Scalar, compile_expression, format_f32


def build_expression() -> Scalar:
    s1 = Scalar.constant(1.0)
    s2 = Scalar.constant(2.0)
    s3 = Scalar.constant(3.0)
    s4 = Scalar.constant(4.0)
    s5 = Scalar.constant(5.0)

    add = s1.add(s2)
    sub = s3.sub(s4)
    mul = s5.mul(add)

    mulop = add * sub
    divop = add / mul
    return mulop + divop


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description=__doc__)
    p.add_argument("--jit", action="store_true", help="also run the lowered program through jax.jit")
    p.add_argument("--no-listing", action="store_true", help="skip printing the instruction listing")
    p.add_argument("--verbose", action="store_true", help="enable debug logging")
    a = p.parse_args(argv)

    if a.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    res = build_expression()
    print(res)
    print(f"result: {format_f32(res.evaluate())}")

    compiled = compile_expression(res)
    if not a.no_listing:
        for line in compiled.program.lines():
            print(line)
    if a.jit:
        print(f"jit result: {format_f32(float(compiled.jit()()))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
