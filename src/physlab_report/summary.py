# src/physlab_report/summary.py
"""
Result tables for one series: per-row averages, derived quantities and the
least-squares fit, as pandas DataFrames and CSV/JSON files.

Output (under out_dir/run_id/):
  rows.csv     - one line per measurement row (averages, uncertainties, formatted text)
  derived.csv  - one line per (row, derived quantity)
  fit.json     - fit parameters, formatted slope/intercept and a small manifest
"""
from __future__ import annotations

import hashlib
import json
import math
import warnings
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .aggregation import aggregate_row
from .config import DEFAULT_SETTINGS, EngineSettings
from .indirect import compute_derived_quantities
from .model import Series, formula_issues
from .regression import FitResult, build_regression_points, fit_linear_regression
from .rounding import format_measurement, format_value

ROW_COLUMNS = [
    "row",
    "indep_avg_raw",
    "indep_avg",
    "indep_uncertainty",
    "dep_avg_raw",
    "dep_avg",
    "dep_uncertainty",
    "indep_text",
    "indep_uncertainty_text",
    "dep_text",
    "dep_uncertainty_text",
    "in_fit",
]

DERIVED_COLUMNS = [
    "row",
    "id",
    "symbol",
    "unit",
    "value",
    "uncertainty",
    "relative_error",
    "percent_error",
    "value_text",
    "uncertainty_text",
]


def warn_formula_issues(series: Series) -> int:
    """Emit one UserWarning per formula issue; returns how many were found."""
    issues = formula_issues(series)
    for issue in issues:
        warnings.warn(
            f"series {series.id!r}: {issue.symbol or issue.quantity_id}: {issue.kind} ({issue.detail})",
            UserWarning,
        )
    return len(issues)


def build_row_table(series: Series, settings: Optional[EngineSettings] = None) -> pd.DataFrame:
    """
    One line per measurement row. Averages in raw units are formatted at the
    series precision; auxiliary averages get an "aux_{symbol}" column.
    """
    settings = settings or DEFAULT_SETTINGS
    fit_rows = {p.row_index for p in build_regression_points(series, settings)}
    records: List[Dict[str, Any]] = []
    for idx, row in enumerate(series.rows):
        agg = aggregate_row(row, series, settings)
        rec: Dict[str, Any] = {
            "row": idx + 1,
            "indep_avg_raw": agg.indep_avg_raw,
            "indep_avg": agg.indep_avg,
            "indep_uncertainty": agg.indep_uncertainty,
            "dep_avg_raw": agg.dep_avg_raw,
            "dep_avg": agg.dep_avg,
            "dep_uncertainty": agg.dep_uncertainty,
            "indep_text": format_value(agg.indep_avg_raw, series.precision_x),
            "indep_uncertainty_text": format_measurement(agg.indep_avg_raw, agg.indep_uncertainty).uncertainty_text,
            "dep_text": format_value(agg.dep_avg_raw, series.precision_y),
            "dep_uncertainty_text": format_measurement(agg.dep_avg_raw, agg.dep_uncertainty).uncertainty_text,
            "in_fit": idx in fit_rows,
        }
        for q in series.auxiliary:
            rec[f"aux_{q.symbol}"] = agg.aux_avg(q.id)
        records.append(rec)

    aux_cols = [f"aux_{q.symbol}" for q in series.auxiliary]
    return pd.DataFrame.from_records(records, columns=ROW_COLUMNS + aux_cols)


def build_derived_table(series: Series, settings: Optional[EngineSettings] = None) -> pd.DataFrame:
    """Long table: one line per (row, derived quantity)."""
    settings = settings or DEFAULT_SETTINGS
    records: List[Dict[str, Any]] = []
    for idx, row in enumerate(series.rows):
        for res in compute_derived_quantities(row, series, settings):
            fmt = format_measurement(res.value, res.uncertainty)
            records.append(
                {
                    "row": idx + 1,
                    "id": res.id,
                    "symbol": res.symbol,
                    "unit": res.unit,
                    "value": res.value,
                    "uncertainty": res.uncertainty,
                    "relative_error": res.relative_error,
                    "percent_error": res.percent_error,
                    "value_text": fmt.value_text,
                    "uncertainty_text": fmt.uncertainty_text,
                }
            )
    return pd.DataFrame.from_records(records, columns=DERIVED_COLUMNS)


def fit_summary(fit: Optional[FitResult], settings: Optional[EngineSettings] = None) -> Dict[str, Any]:
    """Fit parameters plus Rule-of-Gold formatted slope/intercept; {"status": "no_fit"} without a fit."""
    settings = settings or DEFAULT_SETTINGS
    if fit is None:
        return {"status": "no_fit"}
    slope = format_measurement(fit.slope, fit.sigma_slope)
    intercept = format_measurement(fit.intercept, fit.sigma_intercept)
    out: Dict[str, Any] = {"status": "ok", **asdict(fit)}
    out["slope_text"] = f"{slope.value_text} ± {slope.uncertainty_text}"
    out["intercept_text"] = f"{intercept.value_text} ± {intercept.uncertainty_text}"
    ci = fit.confidence_interval(settings.confidence)
    out["confidence"] = settings.confidence
    out["slope_ci_halfwidth"] = None if ci is None else ci[0]
    out["intercept_ci_halfwidth"] = None if ci is None else ci[1]
    return out


def _clean_for_json(obj: Any) -> Any:
    """Recursively replace NaN/Inf with None so JSON is valid."""
    if isinstance(obj, dict):
        return {k: _clean_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_clean_for_json(x) for x in obj]
    if hasattr(obj, "item"):  # numpy scalar
        try:
            obj = obj.item()
        except (ValueError, AttributeError, TypeError):
            pass
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    return obj


def _file_sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()


def build_run_manifest_dict(run_id: str, input_paths: List[Path]) -> Dict[str, Any]:
    """run_id, timestamp and hash/size of each input file."""
    manifest: Dict[str, Any] = {
        "run_id": run_id,
        "timestamp_iso": datetime.now(timezone.utc).isoformat(),
        "input_files": [],
    }
    for p in (Path(x) for x in input_paths):
        if not p.is_file():
            manifest["input_files"].append({"path": str(p), "error": "file not found"})
            continue
        manifest["input_files"].append(
            {"path": str(p.resolve()), "sha256": _file_sha256(p), "size_bytes": p.stat().st_size}
        )
    return manifest


def write_series_outputs(
    series: Series,
    out_dir: Path,
    run_id: str,
    *,
    settings: Optional[EngineSettings] = None,
    input_paths: Optional[List[Path]] = None,
) -> Dict[str, Path]:
    """Write rows.csv, derived.csv and fit.json under out_dir/run_id; returns the written paths."""
    settings = settings or DEFAULT_SETTINGS
    run_dir = Path(out_dir) / run_id
    run_dir.mkdir(parents=True, exist_ok=True)

    warn_formula_issues(series)

    rows = build_row_table(series, settings)
    derived = build_derived_table(series, settings)
    points = build_regression_points(series, settings)
    dropped = len(series.rows) - len(points)
    if dropped > 0:
        warnings.warn(
            f"series {series.id!r}: {dropped} row(s) left out of the fit (empty or unparseable).",
            UserWarning,
        )
    fit = fit_linear_regression(points, settings)

    paths = {
        "rows": run_dir / "rows.csv",
        "derived": run_dir / "derived.csv",
        "fit": run_dir / "fit.json",
    }
    rows.to_csv(paths["rows"], index=False)
    derived.to_csv(paths["derived"], index=False)
    payload = {
        "series_id": series.id,
        "series_name": series.name,
        "independent": {"symbol": series.independent.symbol, "unit": series.independent.unit},
        "dependent": {"symbol": series.dependent.symbol, "unit": series.dependent.unit},
        "fit": fit_summary(fit, settings),
        "manifest": build_run_manifest_dict(run_id, input_paths or []),
    }
    with open(paths["fit"], "w", encoding="utf-8") as f:
        json.dump(_clean_for_json(payload), f, indent=2, ensure_ascii=False)
    return paths
