# src/physlab_report/loader.py
"""
YAML input for the command-line scripts.

A series file looks like:

    id: pendulum
    name: Simple pendulum
    precision_x: 3
    precision_y: 3
    independent: {id: L, name: Length, symbol: L, unit: cm, multiplier: 0.01,
                  uncertainty: 0.1, repetitions: 1}
    dependent:   {id: T, name: Period, symbol: T, unit: s, uncertainty: 0.01,
                  repetitions: 3}
    auxiliary:   [...]
    derived:     [{id: g, name: Gravity, symbol: g, formula: "4*pi^2*L/T^2"}]
    rows:
      - {independent: ["20"], dependent: ["0.90", "0.91", "0.89"]}

Readings are kept as text exactly as typed; numbers in the YAML are turned
into their string form.
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .model import DerivedQuantity, MeasurementRow, QuantityConfig, Series


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        obj = yaml.safe_load(f)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"YAML root must be a mapping: {path}")
    return obj


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def _quantity_from_dict(obj: Dict[str, Any], where: str, default_precision: int = 3) -> QuantityConfig:
    if not isinstance(obj, dict):
        raise ValueError(f"{where} must be a mapping")
    for key in ("id", "symbol"):
        if not _text(obj.get(key)).strip():
            raise ValueError(f"{where} needs a non-empty '{key}'")
    formula = obj.get("formula")
    return QuantityConfig(
        id=_text(obj["id"]),
        name=_text(obj.get("name", obj["id"])),
        symbol=_text(obj["symbol"]),
        unit=_text(obj.get("unit", "")),
        multiplier=float(obj.get("multiplier", 1.0)),
        uncertainty=float(obj.get("uncertainty", 0.0)),
        repetitions=max(1, int(obj.get("repetitions", 1))),
        precision=int(obj.get("precision", default_precision)),
        is_derived=bool(obj.get("is_derived", False)),
        formula=None if formula is None else _text(formula),
    )


def _derived_from_dict(obj: Dict[str, Any], where: str, default_precision: int = 3) -> DerivedQuantity:
    if not isinstance(obj, dict):
        raise ValueError(f"{where} must be a mapping")
    for key in ("id", "symbol", "formula"):
        if not _text(obj.get(key)).strip():
            raise ValueError(f"{where} needs a non-empty '{key}'")
    return DerivedQuantity(
        id=_text(obj["id"]),
        name=_text(obj.get("name", obj["id"])),
        symbol=_text(obj["symbol"]),
        formula=_text(obj["formula"]),
        unit=_text(obj.get("unit", "")),
        precision=int(obj.get("precision", default_precision)),
    )


def _row_from_dict(obj: Dict[str, Any], where: str) -> MeasurementRow:
    if not isinstance(obj, dict):
        raise ValueError(f"{where} must be a mapping")
    aux = obj.get("auxiliary") or {}
    if not isinstance(aux, dict):
        raise ValueError(f"{where}.auxiliary must be a mapping")
    return MeasurementRow(
        independent=tuple(_text(v) for v in (obj.get("independent") or [])),
        dependent=tuple(_text(v) for v in (obj.get("dependent") or [])),
        auxiliary={str(k): _text(v) for k, v in aux.items()},
        indep_uncertainty=_text(obj.get("indep_uncertainty", "")),
        dep_uncertainty=_text(obj.get("dep_uncertainty", "")),
    )


def series_from_dict(obj: Dict[str, Any], default_precision: int = 3) -> Series:
    """Build a Series; precisions missing from the mapping use default_precision (EngineSettings.default_precision)."""
    if "independent" not in obj or "dependent" not in obj:
        raise ValueError("series needs 'independent' and 'dependent' quantities")
    p = int(default_precision)
    rows: List[Any] = obj.get("rows") or []
    return Series(
        id=_text(obj.get("id", "series")),
        name=_text(obj.get("name", obj.get("id", "series"))),
        independent=_quantity_from_dict(obj["independent"], "independent", p),
        dependent=_quantity_from_dict(obj["dependent"], "dependent", p),
        auxiliary=tuple(
            _quantity_from_dict(q, f"auxiliary[{i}]", p) for i, q in enumerate(obj.get("auxiliary") or [])
        ),
        derived=tuple(
            _derived_from_dict(d, f"derived[{i}]", p) for i, d in enumerate(obj.get("derived") or [])
        ),
        rows=tuple(_row_from_dict(r, f"rows[{i}]") for i, r in enumerate(rows)),
        precision_x=int(obj.get("precision_x", p)),
        precision_y=int(obj.get("precision_y", p)),
    )


def series_to_dict(series: Series) -> Dict[str, Any]:
    out = asdict(series)
    out["auxiliary"] = list(out["auxiliary"])
    out["derived"] = list(out["derived"])
    out["rows"] = [
        {
            "independent": list(r.independent),
            "dependent": list(r.dependent),
            "auxiliary": dict(r.auxiliary),
            "indep_uncertainty": r.indep_uncertainty,
            "dep_uncertainty": r.dep_uncertainty,
        }
        for r in series.rows
    ]
    return out


def load_series(path: Path, default_precision: int = 3) -> Series:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"series file not found: {path}")
    return series_from_dict(load_yaml(path), default_precision)


def write_series(series: Series, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(series_to_dict(series), f, sort_keys=False, allow_unicode=True)
    return path
