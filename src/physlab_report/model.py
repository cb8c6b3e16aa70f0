# src/physlab_report/model.py
"""
Immutable data model for one measurement series.

A Series holds one independent and one dependent QuantityConfig (the x/y
axes), a pool of auxiliary quantities, an ordered list of derived quantities
and the raw measurement rows. All types are frozen; every transform in this
package builds a new value with dataclasses.replace instead of editing in
place, so callers never observe a half-applied change.

Row layout:
  independent / dependent : one raw string per repetition
  auxiliary               : "{qid}_{rep}" -> raw string, a bare "{qid}" alias
                            for single-repetition data, "{qid}_unc" -> per-row
                            uncertainty override
  indep_uncertainty / dep_uncertainty : per-row override, "" = use the default
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from .expression import CONSTANTS, referenced_symbols, unknown_identifiers

ROLES: Tuple[str, ...] = ("independent", "dependent")


@dataclass(frozen=True)
class QuantityConfig:
    id: str
    name: str
    symbol: str
    unit: str = ""
    multiplier: float = 1.0
    uncertainty: float = 0.0
    repetitions: int = 1
    precision: int = 3
    is_derived: bool = False
    formula: Optional[str] = None


@dataclass(frozen=True)
class DerivedQuantity:
    id: str
    name: str
    symbol: str
    formula: str
    unit: str = ""
    precision: int = 3


@dataclass(frozen=True)
class MeasurementRow:
    independent: Tuple[str, ...] = ()
    dependent: Tuple[str, ...] = ()
    auxiliary: Mapping[str, str] = field(default_factory=dict)
    indep_uncertainty: str = ""
    dep_uncertainty: str = ""


@dataclass(frozen=True)
class Series:
    id: str
    name: str
    independent: QuantityConfig
    dependent: QuantityConfig
    auxiliary: Tuple[QuantityConfig, ...] = ()
    derived: Tuple[DerivedQuantity, ...] = ()
    rows: Tuple[MeasurementRow, ...] = ()
    precision_x: int = 3
    precision_y: int = 3

    def axis(self, role: str) -> QuantityConfig:
        if role == "independent":
            return self.independent
        if role == "dependent":
            return self.dependent
        raise ValueError(f"Unknown role: {role!r}")

    def find_auxiliary(self, quantity_id: str) -> Optional[QuantityConfig]:
        return next((q for q in self.auxiliary if q.id == quantity_id), None)

    def find_derived(self, quantity_id: str) -> Optional[DerivedQuantity]:
        return next((d for d in self.derived if d.id == quantity_id), None)

    def measured_symbols(self) -> List[str]:
        """Symbols of the independent, dependent and auxiliary quantities (declaration order)."""
        syms = [self.independent.symbol, self.dependent.symbol]
        syms.extend(q.symbol for q in self.auxiliary)
        return [s for s in syms if s]

    def all_symbols(self) -> List[str]:
        return self.measured_symbols() + [d.symbol for d in self.derived if d.symbol]


def aux_key(quantity_id: str, rep: int) -> str:
    return f"{quantity_id}_{rep}"


def aux_uncertainty_key(quantity_id: str) -> str:
    return f"{quantity_id}_unc"


def _fit_slots(values: Tuple[str, ...], count: int) -> Tuple[str, ...]:
    vals = tuple(values[:count])
    return vals + ("",) * (count - len(vals))


def empty_row(series: Series) -> MeasurementRow:
    """Blank row with slots sized to the current repetition counts."""
    return MeasurementRow(
        independent=("",) * max(1, series.independent.repetitions),
        dependent=("",) * max(1, series.dependent.repetitions),
        auxiliary={},
    )


def resize_rows(series: Series, count: int) -> Series:
    """
    Grow or shrink the row list. New rows are appended blank; removed rows
    are truncated from the end. Existing rows are never reordered.
    """
    count = max(0, int(count))
    rows = series.rows[:count]
    if count > len(rows):
        rows = rows + tuple(empty_row(series) for _ in range(count - len(rows)))
    return replace(series, rows=rows)


def set_repetitions(series: Series, role: str, count: int) -> Series:
    """
    Change the repetition count of the independent or dependent quantity and
    pad/truncate every row's slots to match.
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role!r}")
    count = max(1, int(count))
    cfg = replace(series.axis(role), repetitions=count)
    rows = tuple(
        replace(row, **{role: _fit_slots(getattr(row, role), count)}) for row in series.rows
    )
    return replace(series, rows=rows, **{role: cfg})


def with_reading(series: Series, row_index: int, role: str, rep: int, text: str) -> Series:
    """Return a series with one raw independent/dependent slot replaced."""
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role!r}")
    row = series.rows[row_index]
    slots = list(getattr(row, role))
    if rep >= len(slots):
        slots.extend([""] * (rep + 1 - len(slots)))
    slots[rep] = str(text)
    new_row = replace(row, **{role: tuple(slots)})
    rows = series.rows[:row_index] + (new_row,) + series.rows[row_index + 1 :]
    return replace(series, rows=rows)


# -------------------------
# Formula reference checks
# -------------------------


@dataclass(frozen=True)
class FormulaIssue:
    quantity_id: str
    symbol: str
    kind: str  # "duplicate_symbol" | "self_reference" | "forward_reference" | "unknown_identifier"
    detail: str


class SeriesValidationError(ValueError):
    """Raised by validate_series when symbols or formulas are inconsistent."""

    def __init__(self, issues: List[FormulaIssue]) -> None:
        self.issues = list(issues)
        msg = "; ".join(f"{i.symbol or i.quantity_id}: {i.detail}" for i in self.issues)
        super().__init__(f"Invalid series definition: {msg}")


def blocked_derived_symbols(series: Series, index: int) -> Dict[str, str]:
    """
    Derived symbols the derived quantity at ``index`` may not reference:
    its own symbol and every later-declared derived symbol, mapped to the
    issue kind.
    """
    blocked: Dict[str, str] = {}
    known = set(series.measured_symbols())
    known.update(d.symbol for d in series.derived[:index])
    for j, d in enumerate(series.derived):
        if not d.symbol or d.symbol in known:
            continue
        if j == index:
            blocked[d.symbol] = "self_reference"
        elif j > index:
            blocked[d.symbol] = "forward_reference"
    return blocked


def axis_context_symbols(series: Series, role: str) -> List[str]:
    """
    Symbols a derived independent/dependent quantity may reference: the
    auxiliary symbols, the other axis when that axis is measured, and the
    derived quantities (evaluated against the measured values first).
    """
    other = series.dependent if role == "independent" else series.independent
    syms = [q.symbol for q in series.auxiliary if q.symbol]
    if not other.is_derived and other.symbol:
        syms.append(other.symbol)
    syms.extend(d.symbol for d in series.derived if d.symbol)
    return syms


def _derived_references(series: Series, symbol: str, all_symbols: List[str]) -> FrozenSet[str]:
    d = next((d for d in series.derived if d.symbol == symbol), None)
    return frozenset() if d is None else referenced_symbols(d.formula, all_symbols)


def formula_issues(series: Series) -> List[FormulaIssue]:
    """Collect symbol and formula problems without raising."""
    issues: List[FormulaIssue] = []
    seen: Dict[str, str] = {}
    quantities = [series.independent, series.dependent, *series.auxiliary, *series.derived]
    for q in quantities:
        if not q.symbol:
            continue
        if q.symbol in seen:
            issues.append(
                FormulaIssue(q.id, q.symbol, "duplicate_symbol", f"symbol also used by {seen[q.symbol]!r}")
            )
        else:
            seen[q.symbol] = q.id

    all_symbols = series.all_symbols()
    for index, d in enumerate(series.derived):
        blocked = blocked_derived_symbols(series, index)
        for sym in sorted(referenced_symbols(d.formula, all_symbols)):
            # a not-yet-known symbol spelled like a constant resolves to the constant
            if sym in blocked and sym not in CONSTANTS:
                issues.append(FormulaIssue(d.id, d.symbol, blocked[sym], f"references {sym!r}"))
        for name in unknown_identifiers(d.formula, all_symbols):
            issues.append(FormulaIssue(d.id, d.symbol, "unknown_identifier", f"unknown name {name!r}"))

    for role in ROLES:
        cfg = series.axis(role)
        if not (cfg.is_derived and cfg.formula):
            continue
        allowed = set(axis_context_symbols(series, role))
        for sym in sorted(referenced_symbols(cfg.formula, all_symbols)):
            if sym == cfg.symbol:
                issues.append(FormulaIssue(cfg.id, cfg.symbol, "self_reference", f"references {sym!r}"))
            elif sym not in allowed:
                issues.append(FormulaIssue(cfg.id, cfg.symbol, "forward_reference", f"references {sym!r}"))
            elif cfg.symbol in _derived_references(series, sym, all_symbols):
                issues.append(
                    FormulaIssue(cfg.id, cfg.symbol, "self_reference", f"references {sym!r}, which needs {cfg.symbol!r}")
                )
        for name in unknown_identifiers(cfg.formula, all_symbols):
            issues.append(FormulaIssue(cfg.id, cfg.symbol, "unknown_identifier", f"unknown name {name!r}"))
    return issues


def validate_series(series: Series) -> Series:
    """Return the series unchanged, or raise SeriesValidationError listing every issue."""
    issues = formula_issues(series)
    if issues:
        raise SeriesValidationError(issues)
    return series
