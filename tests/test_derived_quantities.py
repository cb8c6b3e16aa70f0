from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from physlab_report.config import EngineSettings  # noqa: E402
from physlab_report.indirect import compute_derived_quantities, error_budget  # noqa: E402
from physlab_report.model import (  # noqa: E402
    DerivedQuantity,
    MeasurementRow,
    QuantityConfig,
    Series,
    SeriesValidationError,
    validate_series,
)


def _xy_series(*derived: DerivedQuantity, x: str = "2", y: str = "3", x_mult: float = 1.0) -> Series:
    row = MeasurementRow(independent=(x,), dependent=(y,))
    return Series(
        id="s",
        name="s",
        independent=QuantityConfig(id="x", name="x", symbol="x", uncertainty=0.1, multiplier=x_mult),
        dependent=QuantityConfig(id="y", name="y", symbol="y", uncertainty=0.2),
        derived=tuple(derived),
        rows=(row,),
    )


def _dq(id_: str, formula: str) -> DerivedQuantity:
    return DerivedQuantity(id=id_, name=id_, symbol=id_, formula=formula)


def _by_id(series: Series):
    return {r.id: r for r in compute_derived_quantities(series.rows[0], series)}


class DerivedQuantityTests(unittest.TestCase):
    def test_product_relative_error(self) -> None:
        series = _xy_series(_dq("f", "f = x*y"))
        res = _by_id(series)["f"]
        self.assertAlmostEqual(res.value, 6.0)
        expected_rel = math.sqrt((0.1 / 2.0) ** 2 + (0.2 / 3.0) ** 2)
        self.assertAlmostEqual(res.relative_error, expected_rel, places=6)
        self.assertAlmostEqual(res.percent_error, expected_rel * 100.0, places=4)
        self.assertAlmostEqual(res.uncertainty, 6.0 * expected_rel, places=5)

    def test_chained_derived_quantities(self) -> None:
        series = _xy_series(_dq("A", "A = x*2"), _dq("B", "B = A + 1"))
        res = _by_id(series)
        self.assertAlmostEqual(res["A"].value, 4.0)
        self.assertAlmostEqual(res["B"].value, 5.0)
        self.assertAlmostEqual(res["A"].uncertainty, 0.2, places=6)
        self.assertAlmostEqual(res["B"].uncertainty, 0.2, places=6)

    def test_forward_reference_is_nan_and_reported(self) -> None:
        series = _xy_series(_dq("A", "A = B + 1"), _dq("B", "B = x"))
        res = _by_id(series)
        self.assertTrue(math.isnan(res["A"].value))
        self.assertTrue(math.isnan(res["A"].relative_error))
        self.assertAlmostEqual(res["B"].value, 2.0)
        with self.assertRaises(SeriesValidationError) as ctx:
            validate_series(series)
        kinds = {i.kind for i in ctx.exception.issues}
        self.assertIn("forward_reference", kinds)

    def test_self_reference_is_nan(self) -> None:
        series = _xy_series(_dq("A", "A = A + x"))
        self.assertTrue(math.isnan(_by_id(series)["A"].value))
        with self.assertRaises(SeriesValidationError):
            validate_series(series)

    def test_zero_value_has_zero_relative_error(self) -> None:
        series = _xy_series(_dq("z", "z = x - x"))
        res = _by_id(series)["z"]
        self.assertEqual(res.value, 0.0)
        self.assertEqual(res.relative_error, 0.0)

    def test_math_failure_is_nan(self) -> None:
        series = _xy_series(_dq("r", "r = sqrt(0 - x)"))
        res = _by_id(series)["r"]
        self.assertTrue(math.isnan(res.value))
        self.assertTrue(math.isnan(res.uncertainty))

    def test_failed_quantity_enters_later_formulas_as_zero(self) -> None:
        series = _xy_series(_dq("A", "A = sqrt(0 - x)"), _dq("B", "B = A + 1"))
        res = _by_id(series)
        self.assertTrue(math.isnan(res["A"].value))
        self.assertTrue(math.isnan(res["A"].relative_error))
        self.assertEqual(res["B"].value, 1.0)
        self.assertEqual(res["B"].uncertainty, 0.0)

    def test_formulas_see_scaled_values(self) -> None:
        series = _xy_series(_dq("L", "L = x"), x="20", x_mult=0.01)
        res = _by_id(series)["L"]
        self.assertAlmostEqual(res.value, 0.2)
        self.assertAlmostEqual(res.uncertainty, 0.001, places=8)

    def test_pi_constant_in_formula(self) -> None:
        series = _xy_series(_dq("c", "c = 2*pi*x"))
        self.assertAlmostEqual(_by_id(series)["c"].value, 4 * math.pi)

    def test_custom_perturbation_step(self) -> None:
        series = _xy_series(_dq("q", "q = x^2"))
        settings = EngineSettings(perturbation_step=1e-7)
        res = compute_derived_quantities(series.rows[0], series, settings)[0]
        self.assertAlmostEqual(res.uncertainty, 2 * 2.0 * 0.1, places=5)


class ErrorBudgetTests(unittest.TestCase):
    def test_power_factors_and_shares(self) -> None:
        series = _xy_series(_dq("f", "f = x^2*y"))
        terms = {t.symbol: t for t in error_budget(series.rows[0], series, "f")}
        self.assertEqual(set(terms), {"x", "y"})
        self.assertEqual(terms["x"].power_factor, 2.0)
        self.assertEqual(terms["y"].power_factor, 1.0)
        self.assertAlmostEqual(terms["x"].partial, 12.0, places=3)
        self.assertAlmostEqual(terms["x"].contribution, 1.44, places=4)
        self.assertAlmostEqual(terms["y"].contribution, 0.64, places=4)
        self.assertAlmostEqual(terms["x"].percent + terms["y"].percent, 100.0)
        self.assertAlmostEqual(terms["x"].percent, 1.44 / 2.08 * 100.0, places=2)

    def test_square_root_power_factor(self) -> None:
        series = _xy_series(_dq("s", "s = sqrt(x)"), x="4")
        terms = error_budget(series.rows[0], series, "s")
        self.assertEqual(len(terms), 1)
        self.assertEqual(terms[0].power_factor, 0.5)

    def test_unknown_id_is_empty(self) -> None:
        series = _xy_series(_dq("f", "f = x*y"))
        self.assertEqual(error_budget(series.rows[0], series, "nope"), [])


if __name__ == "__main__":
    unittest.main()
