from __future__ import annotations

import json
import math
import sys
import tempfile
import unittest
import warnings
from pathlib import Path

import numpy as np
import pandas as pd


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import matplotlib  # noqa: E402
matplotlib.use("Agg")

from physlab_report.loader import load_series  # noqa: E402
from physlab_report.meta_paths import get_meta_paths  # noqa: E402
from physlab_report.model import DerivedQuantity, MeasurementRow, QuantityConfig, Series  # noqa: E402
from physlab_report.plotting import plot_series_fit  # noqa: E402
from physlab_report.rounding import PLACEHOLDER  # noqa: E402
from physlab_report.summary import (  # noqa: E402
    _clean_for_json,
    build_derived_table,
    build_row_table,
    fit_summary,
    write_series_outputs,
)


PENDULUM_YML = get_meta_paths(REPO_ROOT).series_dir / "pendulum.yml"


def _small_series(rows, derived=()) -> Series:
    return Series(
        id="small",
        name="Small",
        independent=QuantityConfig(id="x", name="x", symbol="x", uncertainty=0.1),
        dependent=QuantityConfig(id="y", name="y", symbol="y", uncertainty=0.1),
        derived=tuple(derived),
        rows=tuple(MeasurementRow(independent=(x,), dependent=(y,)) for x, y in rows),
    )


class ResultTableTests(unittest.TestCase):
    def test_row_table_for_example_series(self) -> None:
        s = load_series(PENDULUM_YML)
        df = build_row_table(s)
        self.assertEqual(len(df), 5)
        self.assertIn("aux_m", df.columns)
        self.assertEqual(df.loc[0, "indep_text"], "20.000")
        self.assertEqual(df.loc[0, "dep_text"], "0.900")
        self.assertAlmostEqual(float(df.loc[0, "indep_avg"]), 0.2)
        self.assertAlmostEqual(float(df.loc[0, "aux_m"]), 0.0502)
        self.assertTrue(bool(df["in_fit"].all()))

    def test_derived_table_is_long_format(self) -> None:
        s = load_series(PENDULUM_YML)
        df = build_derived_table(s)
        self.assertEqual(len(df), 10)
        g = df[df["id"] == "g"]
        self.assertEqual(len(g), 5)
        self.assertTrue(((g["value"] > 9.0) & (g["value"] < 10.5)).all())
        self.assertTrue((g["uncertainty"] > 0).all())
        self.assertTrue(g["value_text"].map(lambda t: t != PLACEHOLDER).all())

    def test_nan_derived_values_render_placeholder(self) -> None:
        s = _small_series([("1", "2")], derived=[DerivedQuantity(id="r", name="r", symbol="r", formula="sqrt(0-x)")])
        df = build_derived_table(s)
        self.assertTrue(math.isnan(float(df.loc[0, "value"])))
        self.assertEqual(df.loc[0, "value_text"], PLACEHOLDER)

    def test_empty_row_is_not_in_fit(self) -> None:
        df = build_row_table(_small_series([("1", "2"), ("", ""), ("2", "4")]))
        self.assertEqual(df["in_fit"].tolist(), [True, False, True])


class FitSummaryTests(unittest.TestCase):
    def test_no_fit(self) -> None:
        self.assertEqual(fit_summary(None), {"status": "no_fit"})

    def test_clean_for_json(self) -> None:
        cleaned = _clean_for_json({"a": math.nan, "b": [math.inf, 1.0], "c": np.float64("nan"), "d": np.int64(3)})
        self.assertEqual(cleaned, {"a": None, "b": [None, 1.0], "c": None, "d": 3})


class WriteOutputsTests(unittest.TestCase):
    def test_writes_tables_and_fit_json(self) -> None:
        s = load_series(PENDULUM_YML)
        with tempfile.TemporaryDirectory() as td:
            with warnings.catch_warnings():
                warnings.simplefilter("error", UserWarning)
                paths = write_series_outputs(s, Path(td), "run1", input_paths=[PENDULUM_YML])
            for key in ("rows", "derived", "fit"):
                self.assertTrue(paths[key].is_file(), key)
            self.assertEqual(paths["rows"].parent.name, "run1")
            rows = pd.read_csv(paths["rows"])
            self.assertEqual(len(rows), 5)
            with open(paths["fit"], "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual(payload["series_id"], "pendulum")
            self.assertEqual(payload["fit"]["status"], "ok")
            self.assertEqual(payload["fit"]["n"], 5)
            self.assertIn("±", payload["fit"]["slope_text"])
            self.assertEqual(payload["manifest"]["run_id"], "run1")
            self.assertEqual(len(payload["manifest"]["input_files"][0]["sha256"]), 64)

    def test_dropped_rows_and_formula_issues_warn(self) -> None:
        s = _small_series(
            [("1", "2"), ("", ""), ("2", "4")],
            derived=[DerivedQuantity(id="a", name="a", symbol="a", formula="x*k")],
        )
        with tempfile.TemporaryDirectory() as td:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                write_series_outputs(s, Path(td), "run2")
        messages = [str(w.message) for w in caught if issubclass(w.category, UserWarning)]
        self.assertTrue(any("unknown_identifier" in m for m in messages), messages)
        self.assertTrue(any("left out of the fit" in m for m in messages), messages)

    def test_two_point_fit_json_has_null_interval(self) -> None:
        s = _small_series([("1", "2"), ("2", "4")])
        with tempfile.TemporaryDirectory() as td:
            paths = write_series_outputs(s, Path(td), "run3")
            with open(paths["fit"], "r", encoding="utf-8") as f:
                fit = json.load(f)["fit"]
        self.assertEqual(fit["status"], "ok")
        self.assertFalse(fit["has_uncertainty"])
        self.assertIsNone(fit["slope_ci_halfwidth"])


class PlotTests(unittest.TestCase):
    def test_plot_written(self) -> None:
        s = load_series(PENDULUM_YML)
        with tempfile.TemporaryDirectory() as td:
            out = plot_series_fit(s, Path(td) / "fit.png")
            self.assertIsNotNone(out)
            self.assertTrue(out.is_file())

    def test_nothing_to_plot(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertIsNone(plot_series_fit(_small_series([("", "")]), Path(td) / "fit.png"))


if __name__ == "__main__":
    unittest.main()
