# src/physlab_report/aggregation.py
"""
Per-row reduction of repeated readings.

For each axis the first ``repetitions`` raw slots are parsed, unparseable
entries are dropped and the rest averaged (0.0 when none parse). Averages are
reported both as typed (raw units) and scaled by the quantity's multiplier;
the scaled values are what every calculation uses.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

from .config import DEFAULT_SETTINGS, EngineSettings
from .expression import ExpressionError, compile_expression
from .model import (
    MeasurementRow,
    QuantityConfig,
    Series,
    aux_key,
    aux_uncertainty_key,
    axis_context_symbols,
)
from .parsing import is_blank, mean_of_readings, parse_reading
from .propagation import fold_formulas, propagate


def _effective_uncertainty(override: str, default: float) -> float:
    """Row override when present and parseable, otherwise the configured default."""
    if not is_blank(override):
        v = parse_reading(override)
        if not math.isnan(v):
            return v
    return float(default)


def _aux_average(row: MeasurementRow, cfg: QuantityConfig) -> float:
    reps = max(1, int(cfg.repetitions or 1))
    values = []
    for rep in range(reps):
        raw = row.auxiliary.get(aux_key(cfg.id, rep))
        if is_blank(raw) and rep == 0:
            raw = row.auxiliary.get(cfg.id)
        values.append(raw)
    avg, _ = mean_of_readings(values)
    return avg * float(cfg.multiplier or 1.0)


def _aux_uncertainty(row: MeasurementRow, cfg: QuantityConfig) -> float:
    override = row.auxiliary.get(aux_uncertainty_key(cfg.id), "")
    return _effective_uncertainty(override, cfg.uncertainty) * float(cfg.multiplier or 1.0)


def _aux_context(row: MeasurementRow, series: Series) -> Dict[str, float]:
    return {q.symbol: _aux_average(row, q) for q in series.auxiliary if q.symbol}


def _aux_uncertainties(row: MeasurementRow, series: Series) -> Dict[str, float]:
    return {q.symbol: _aux_uncertainty(row, q) for q in series.auxiliary if q.symbol}


@dataclass(frozen=True)
class RowAggregate:
    indep_avg_raw: float
    dep_avg_raw: float
    indep_avg: float
    dep_avg: float
    indep_uncertainty: float
    dep_uncertainty: float
    indep_uncertainty_scaled: float
    dep_uncertainty_scaled: float
    row: MeasurementRow
    series: Series

    def aux_avg(self, quantity_id: str) -> float:
        """Unit-scaled average of an auxiliary quantity (0.0 when unknown or empty)."""
        cfg = self.series.find_auxiliary(quantity_id)
        if cfg is None:
            return 0.0
        return _aux_average(self.row, cfg)

    def aux_uncertainty(self, quantity_id: str) -> float:
        """Per-row override ("{id}_unc") or default uncertainty, unit-scaled."""
        cfg = self.series.find_auxiliary(quantity_id)
        if cfg is None:
            return 0.0
        return _aux_uncertainty(self.row, cfg)

    def context(self) -> Dict[str, float]:
        """Symbol -> scaled value for the measured and computed-axis quantities."""
        ctx = _aux_context(self.row, self.series)
        if self.series.independent.symbol:
            ctx[self.series.independent.symbol] = self.indep_avg
        if self.series.dependent.symbol:
            ctx[self.series.dependent.symbol] = self.dep_avg
        return ctx

    def uncertainties(self) -> Dict[str, float]:
        """Symbol -> scaled uncertainty, matching context()."""
        out = _aux_uncertainties(self.row, self.series)
        if self.series.independent.symbol:
            out[self.series.independent.symbol] = self.indep_uncertainty_scaled
        if self.series.dependent.symbol:
            out[self.series.dependent.symbol] = self.dep_uncertainty_scaled
        return out


def _measured_axis(values, cfg: QuantityConfig, override: str) -> tuple[float, float, float, float]:
    reps = max(1, int(cfg.repetitions or 1))
    avg_raw, _ = mean_of_readings(tuple(values)[:reps])
    mult = float(cfg.multiplier or 1.0)
    unc = _effective_uncertainty(override, cfg.uncertainty)
    return avg_raw, avg_raw * mult, unc, unc * mult


def _computed_axis(
    series: Series,
    role: str,
    context: Dict[str, float],
    uncertainties: Dict[str, float],
    settings: EngineSettings,
) -> tuple[float, float, float, float]:
    cfg = series.axis(role)
    allowed = axis_context_symbols(series, role)
    try:
        compiled = compile_expression(cfg.formula or "", allowed)
    except (ExpressionError, RecursionError):
        return math.nan, math.nan, math.nan, math.nan
    ctx = {s: context[s] for s in allowed if s in context}
    unc = {s: uncertainties[s] for s in allowed if s in uncertainties}
    res = propagate(compiled, ctx, unc, step=settings.perturbation_step)
    # computed axes already carry calculation units
    return res.value, res.value, res.uncertainty, res.uncertainty


def aggregate_row(
    row: MeasurementRow,
    series: Series,
    settings: Optional[EngineSettings] = None,
) -> RowAggregate:
    """Reduce one row's repeated readings to averages and effective uncertainties."""
    settings = settings or DEFAULT_SETTINGS
    indep_cfg, dep_cfg = series.independent, series.dependent

    axes: Dict[str, tuple[float, float, float, float]] = {}
    if not indep_cfg.is_derived:
        axes["independent"] = _measured_axis(row.independent, indep_cfg, row.indep_uncertainty)
    if not dep_cfg.is_derived:
        axes["dependent"] = _measured_axis(row.dependent, dep_cfg, row.dep_uncertainty)

    if indep_cfg.is_derived or dep_cfg.is_derived:
        context = _aux_context(row, series)
        uncertainties = _aux_uncertainties(row, series)
        for role, cfg in (("independent", indep_cfg), ("dependent", dep_cfg)):
            if role in axes and cfg.symbol:
                context[cfg.symbol] = axes[role][1]
                uncertainties[cfg.symbol] = axes[role][3]
        # derived quantities are visible to computed axes; one that itself needs
        # a computed axis is NaN here
        for dq, res in fold_formulas(series.derived, context, uncertainties, step=settings.perturbation_step):
            if dq.symbol:
                context[dq.symbol] = res.value
                uncertainties[dq.symbol] = res.uncertainty
        for role, cfg in (("independent", indep_cfg), ("dependent", dep_cfg)):
            if cfg.is_derived:
                axes[role] = _computed_axis(series, role, context, uncertainties, settings)

    i_raw, i_avg, i_unc, i_unc_s = axes["independent"]
    d_raw, d_avg, d_unc, d_unc_s = axes["dependent"]
    return RowAggregate(
        indep_avg_raw=i_raw,
        dep_avg_raw=d_raw,
        indep_avg=i_avg,
        dep_avg=d_avg,
        indep_uncertainty=i_unc,
        dep_uncertainty=d_unc,
        indep_uncertainty_scaled=i_unc_s,
        dep_uncertainty_scaled=d_unc_s,
        row=row,
        series=series,
    )
