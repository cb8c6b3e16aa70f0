from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from physlab_report.expression import (  # noqa: E402
    ExpressionError,
    compile_expression,
    evaluate_expression,
    referenced_symbols,
    strip_assignment,
    unknown_identifiers,
)


class EvaluateExpressionTests(unittest.TestCase):
    def test_power_and_sqrt(self) -> None:
        self.assertAlmostEqual(evaluate_expression("x^2 + sqrt(y)", {"x": 3.0, "y": 16.0}), 13.0)

    def test_assignment_prefix_is_ignored(self) -> None:
        self.assertAlmostEqual(evaluate_expression("v = d/t", {"d": 10.0, "t": 2.0}), 5.0)

    def test_operator_precedence(self) -> None:
        vals = {"x": 3.0}
        self.assertAlmostEqual(evaluate_expression("-x^2", vals), -9.0)
        self.assertAlmostEqual(evaluate_expression("2^3^2", vals), 512.0)
        self.assertAlmostEqual(evaluate_expression("x**2", vals), 9.0)
        self.assertAlmostEqual(evaluate_expression("1 + 2*x - 4/2", vals), 5.0)
        self.assertAlmostEqual(evaluate_expression("(1 + 2)*x", vals), 9.0)

    def test_functions_and_constants(self) -> None:
        self.assertAlmostEqual(evaluate_expression("2*pi", {}), 2 * math.pi)
        self.assertAlmostEqual(evaluate_expression("log(100)", {}), 2.0)
        self.assertAlmostEqual(evaluate_expression("ln(e)", {}), 1.0)
        self.assertAlmostEqual(evaluate_expression("sin(pi/2) + cos(0)", {}), 2.0)
        self.assertAlmostEqual(evaluate_expression("abs(0 - 4)", {}), 4.0)

    def test_longest_symbol_wins(self) -> None:
        self.assertAlmostEqual(evaluate_expression("x0 - x", {"x": 2.0, "x0": 5.0}), 3.0)

    def test_malformed_or_unsafe_formulas_give_nan(self) -> None:
        vals = {"x": 2.0}
        for formula in (
            "",
            "(x + 1",
            "x +",
            "foo(x)",
            "x.real",
            "__import__('os')",
            "x; 1",
            "sqrt x",
            "q * 2",
        ):
            with self.subTest(formula=formula):
                self.assertTrue(math.isnan(evaluate_expression(formula, vals)))

    def test_math_failures_give_nan(self) -> None:
        self.assertTrue(math.isnan(evaluate_expression("x/0", {"x": 1.0})))
        self.assertTrue(math.isnan(evaluate_expression("sqrt(x)", {"x": -1.0})))
        self.assertTrue(math.isnan(evaluate_expression("x^0.5", {"x": -4.0})))

    def test_deep_nesting_gives_nan(self) -> None:
        formula = "(" * 3000 + "1" + ")" * 3000
        self.assertTrue(math.isnan(evaluate_expression(formula, {})))


class CompileExpressionTests(unittest.TestCase):
    def test_compiled_expression_reuses_tree(self) -> None:
        compiled = compile_expression("a*b", ["a", "b", "c"])
        self.assertEqual(compiled.symbols, frozenset({"a", "b"}))
        self.assertAlmostEqual(compiled.evaluate({"a": 2.0, "b": 4.0}), 8.0)
        self.assertAlmostEqual(compiled.evaluate({"a": 3.0, "b": 4.0}), 12.0)

    def test_missing_value_gives_nan(self) -> None:
        compiled = compile_expression("a*b", ["a", "b"])
        self.assertTrue(math.isnan(compiled.evaluate({"a": 2.0})))

    def test_unknown_name_raises(self) -> None:
        with self.assertRaises(ExpressionError):
            compile_expression("foo(a)", ["a"])
        with self.assertRaises(ExpressionError):
            compile_expression("sqrt", ["a"])


class FormulaInspectionTests(unittest.TestCase):
    def test_strip_assignment(self) -> None:
        self.assertEqual(strip_assignment("g = 4*pi^2*L/T^2").strip(), "4*pi^2*L/T^2")
        self.assertEqual(strip_assignment("L/T"), "L/T")

    def test_referenced_symbols(self) -> None:
        self.assertEqual(referenced_symbols("a*b + 2", ["a", "b", "c"]), frozenset({"a", "b"}))

    def test_unknown_identifiers(self) -> None:
        self.assertEqual(unknown_identifiers("a*q + sin(a) + pi", ["a"]), ["q"])


if __name__ == "__main__":
    unittest.main()
