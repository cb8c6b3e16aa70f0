# src/physlab_report/promotion.py
"""
Variable-role promotion: move an auxiliary or derived quantity onto the
independent or dependent axis.

The transition is one pure function from the old Series to a new one:

  1. the current occupant of the target role is demoted to the auxiliary
     pool; its per-repetition readings move from the row arrays to the keyed
     auxiliary map ("{id}_{rep}" plus a bare "{id}" alias for rep 0) and its
     per-row uncertainty override moves to "{id}_unc";
  2. the source leaves its pool. An auxiliary source brings its keyed
     readings (and override) into the row arrays; a derived source has no
     readings, so every row gets one empty slot;
  3. the role's QuantityConfig is replaced.

No recorded text is dropped, only relocated. Unknown sources or roles return
the input unchanged.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Set, Tuple

from .model import (
    ROLES,
    DerivedQuantity,
    MeasurementRow,
    QuantityConfig,
    Series,
    aux_key,
    aux_uncertainty_key,
)
from .parsing import is_blank

_OVERRIDE_FIELD = {"independent": "indep_uncertainty", "dependent": "dep_uncertainty"}


def _unique_id(wanted: str, taken: Set[str]) -> str:
    if wanted not in taken:
        return wanted
    k = 1
    while f"{wanted}-{k}" in taken:
        k += 1
    return f"{wanted}-{k}"


def _demoted_config(occupant: QuantityConfig, new_id: str) -> QuantityConfig:
    return replace(
        occupant,
        id=new_id,
        is_derived=False,
        formula=None,
        repetitions=max(1, int(occupant.repetitions or 1)),
    )


def _demote_row(row: MeasurementRow, role: str, cfg: QuantityConfig) -> Dict[str, str]:
    """Keyed auxiliary map with the role's readings and override moved in."""
    aux = dict(row.auxiliary)
    slots = tuple(getattr(row, role))
    for rep in range(cfg.repetitions):
        aux[aux_key(cfg.id, rep)] = slots[rep] if rep < len(slots) else ""
    aux[cfg.id] = slots[0] if slots else ""
    override = getattr(row, _OVERRIDE_FIELD[role])
    if not is_blank(override):
        aux[aux_uncertainty_key(cfg.id)] = override
    return aux


def _take_aux_readings(aux: Dict[str, str], cfg: QuantityConfig) -> Tuple[Tuple[str, ...], str]:
    """Pop an auxiliary quantity's readings and override out of a row map."""
    reps = max(1, int(cfg.repetitions or 1))
    bare = aux.pop(cfg.id, "")
    slots: List[str] = []
    for rep in range(reps):
        raw = aux.pop(aux_key(cfg.id, rep), "")
        if rep == 0 and is_blank(raw):
            raw = bare
        slots.append(raw)
    override = aux.pop(aux_uncertainty_key(cfg.id), "")
    return tuple(slots), override


def promote_variable_role(series: Series, source_id: str, target_role: str) -> Series:
    """Return a new Series with ``source_id`` occupying ``target_role``."""
    if target_role not in ROLES:
        return series
    source_aux = series.find_auxiliary(source_id)
    source_derived = series.find_derived(source_id)
    if source_aux is None and source_derived is None:
        return series

    occupant = series.axis(target_role)
    other = series.dependent if target_role == "independent" else series.independent
    taken = {other.id, *(q.id for q in series.auxiliary), *(d.id for d in series.derived)}
    demoted = _demoted_config(occupant, _unique_id(occupant.id, taken))
    override_field = _OVERRIDE_FIELD[target_role]

    new_rows: List[MeasurementRow] = []
    for row in series.rows:
        aux = _demote_row(row, target_role, demoted)
        if source_aux is not None:
            slots, override = _take_aux_readings(aux, source_aux)
        else:
            slots, override = ("",), ""
        new_rows.append(replace(row, auxiliary=aux, **{target_role: slots, override_field: override}))

    if source_aux is not None:
        new_cfg = replace(
            source_aux,
            is_derived=False,
            formula=None,
            repetitions=max(1, int(source_aux.repetitions or 1)),
        )
        auxiliary = tuple(q for q in series.auxiliary if q.id != source_id) + (demoted,)
        derived: Tuple[DerivedQuantity, ...] = series.derived
    else:
        new_cfg = QuantityConfig(
            id=source_derived.id,
            name=source_derived.name,
            symbol=source_derived.symbol,
            unit=source_derived.unit,
            multiplier=1.0,
            uncertainty=0.0,
            repetitions=1,
            precision=source_derived.precision,
            is_derived=True,
            formula=source_derived.formula,
        )
        auxiliary = series.auxiliary + (demoted,)
        derived = tuple(d for d in series.derived if d.id != source_id)

    return replace(
        series,
        auxiliary=auxiliary,
        derived=derived,
        rows=tuple(new_rows),
        **{target_role: new_cfg},
    )
