# src/physlab_report/indirect.py
"""
Derived ("indirect") quantities computed row by row.

Derived quantities are evaluated in declaration order as a left-to-right fold:
the symbol table starts with the row's measured values, and each computed
quantity is added to it (with its propagated uncertainty) before the next one
is evaluated. A formula can therefore use any earlier-declared derived symbol.
A formula that names its own symbol or a later one does not resolve against
the table at that point and yields NaN; model.validate_series reports the same
condition as a SeriesValidationError. A NaN result is reported as NaN but enters
the table as 0, so later formulas still evaluate.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .aggregation import aggregate_row
from .config import DEFAULT_SETTINGS, EngineSettings
from .model import DerivedQuantity, MeasurementRow, Series
from .propagation import Propagated, fold_formulas


@dataclass(frozen=True)
class DerivedResult:
    id: str
    name: str
    symbol: str
    unit: str
    precision: int
    value: float
    uncertainty: float
    relative_error: float
    percent_error: float


@dataclass(frozen=True)
class ErrorBudgetTerm:
    symbol: str
    value: float
    uncertainty: float
    partial: float
    power_factor: float
    contribution: float
    percent: float


def _fold(
    row: MeasurementRow,
    series: Series,
    settings: EngineSettings,
) -> Iterator[Tuple[DerivedQuantity, Propagated]]:
    agg = aggregate_row(row, series, settings)
    yield from fold_formulas(
        series.derived, agg.context(), agg.uncertainties(), step=settings.perturbation_step
    )


def _relative(value: float, uncertainty: float, settings: EngineSettings) -> float:
    if math.isnan(value):
        return math.nan
    if abs(value) <= settings.zero_tolerance:
        return 0.0
    return uncertainty / abs(value)


def compute_derived_quantities(
    row: MeasurementRow,
    series: Series,
    settings: Optional[EngineSettings] = None,
) -> List[DerivedResult]:
    """Value, propagated uncertainty, relative and percent error for every derived quantity of a row."""
    settings = settings or DEFAULT_SETTINGS
    out: List[DerivedResult] = []
    for dq, res in _fold(row, series, settings):
        rel = _relative(res.value, res.uncertainty, settings)
        out.append(
            DerivedResult(
                id=dq.id,
                name=dq.name,
                symbol=dq.symbol,
                unit=dq.unit,
                precision=int(dq.precision),
                value=res.value,
                uncertainty=res.uncertainty,
                relative_error=rel,
                percent_error=rel * 100.0,
            )
        )
    return out


def _power_factor(value: float, f: float, partial: float, settings: EngineSettings) -> float:
    """n_i = (x_i / f) * df/dx_i, snapped to the nearest half when close (x^2 -> 2, sqrt -> 0.5)."""
    if abs(f) <= settings.zero_tolerance or abs(value) <= settings.zero_tolerance:
        return 1.0
    n = (value / f) * partial
    snapped = round(n * 2.0) / 2.0
    return snapped if abs(snapped - n) < 0.05 else n


def error_budget(
    row: MeasurementRow,
    series: Series,
    derived_id: str,
    settings: Optional[EngineSettings] = None,
) -> List[ErrorBudgetTerm]:
    """
    Per-symbol breakdown of a derived quantity's uncertainty for one row:
    sensitivity (partial derivative), power factor, variance contribution and
    its share of the total. Empty when the id is unknown or the value is NaN.
    """
    settings = settings or DEFAULT_SETTINGS
    for dq, res in _fold(row, series, settings):
        if dq.id != derived_id:
            continue
        total = sum(t.contribution for t in res.terms)
        return [
            ErrorBudgetTerm(
                symbol=t.symbol,
                value=t.value,
                uncertainty=t.uncertainty,
                partial=t.partial,
                power_factor=_power_factor(t.value, res.value, t.partial, settings),
                contribution=t.contribution,
                percent=(t.contribution / total * 100.0) if total > 0 else 0.0,
            )
            for t in res.terms
        ]
    return []
