# src/physlab_report/propagation.py
"""
First-order uncertainty propagation by forward finite differences.

    u_f^2 = sum_i (df/dx_i * u_i)^2,   df/dx_i ~ (f(x_i + h) - f(x)) / h

Inputs are assumed uncorrelated. Only symbols that appear in the formula and
have a known uncertainty contribute.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Tuple

from .expression import CompiledExpression, ExpressionError, compile_expression
from .model import DerivedQuantity


@dataclass(frozen=True)
class SensitivityTerm:
    symbol: str
    value: float
    uncertainty: float
    partial: float

    @property
    def contribution(self) -> float:
        """Variance contribution (partial * u)^2."""
        return (self.partial * self.uncertainty) ** 2


@dataclass(frozen=True)
class Propagated:
    value: float
    uncertainty: float
    terms: Tuple[SensitivityTerm, ...]


def propagate(
    compiled: CompiledExpression,
    context: Mapping[str, float],
    uncertainties: Mapping[str, float],
    *,
    step: float,
) -> Propagated:
    value = compiled.evaluate(context)
    if math.isnan(value):
        return Propagated(value=math.nan, uncertainty=math.nan, terms=())

    terms = []
    variance = 0.0
    # sorted for a stable term order in error budgets
    for sym in sorted(compiled.symbols):
        if sym not in uncertainties or sym not in context:
            continue
        u = float(uncertainties[sym])
        perturbed: Dict[str, float] = dict(context)
        perturbed[sym] = float(context[sym]) + step
        partial = (compiled.evaluate(perturbed) - value) / step
        term = SensitivityTerm(symbol=sym, value=float(context[sym]), uncertainty=u, partial=partial)
        terms.append(term)
        variance += term.contribution

    return Propagated(value=value, uncertainty=math.sqrt(variance), terms=tuple(terms))


NAN_RESULT = Propagated(value=math.nan, uncertainty=math.nan, terms=())


def table_value(v: float) -> float:
    """What a result contributes to later formulas: NaN enters as 0."""
    return 0.0 if math.isnan(v) else v


def fold_formulas(
    quantities: Iterable[DerivedQuantity],
    context: Mapping[str, float],
    uncertainties: Mapping[str, float],
    *,
    step: float,
) -> Iterator[Tuple[DerivedQuantity, Propagated]]:
    """
    Evaluate formulas in order, adding each symbol to copies of the tables
    before the next one is compiled. A result that is NaN still yields NaN but
    enters the tables as 0 (and 0 uncertainty).
    """
    ctx: Dict[str, float] = dict(context)
    unc: Dict[str, float] = dict(uncertainties)
    for q in quantities:
        try:
            compiled = compile_expression(q.formula, ctx.keys())
        except (ExpressionError, RecursionError):
            res = NAN_RESULT
        else:
            res = propagate(compiled, ctx, unc, step=step)
        yield q, res
        if q.symbol:
            ctx[q.symbol] = table_value(res.value)
            unc[q.symbol] = table_value(res.uncertainty)
