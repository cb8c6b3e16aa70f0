# src/physlab_report/parsing.py
"""
Free-text readings -> numbers.

Students type readings with either decimal separator ("9,81" or "9.81").
Anything that is not a single numeric token is treated as missing (NaN) and
dropped from averages; nothing here raises.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, Tuple

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_reading(value: Any) -> float:
    """
    Parse one reading. Numbers pass through; strings are stripped and every
    ',' becomes '.'. Empty, non-numeric or non-finite input gives NaN.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else math.nan

    s = str(value).strip().replace(",", ".")
    if not s or not _NUMBER_RE.match(s):
        return math.nan
    try:
        v = float(s)
    except ValueError:
        return math.nan
    return v if math.isfinite(v) else math.nan


def mean_of_readings(values: Iterable[Any]) -> Tuple[float, int]:
    """Average of the parseable readings as (mean, count); mean is 0.0 when count is 0."""
    total = 0.0
    count = 0
    for raw in values:
        v = parse_reading(raw)
        if math.isnan(v):
            continue
        total += v
        count += 1
    return (total / count if count else 0.0), count


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""
