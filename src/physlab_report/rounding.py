# src/physlab_report/rounding.py
"""
Rule of Gold for reporting value ± uncertainty.

1. If the first significant digit of the uncertainty is 1, keep TWO
   significant digits; otherwise keep ONE.
2. Always round the uncertainty up (away from zero), never to nearest:
   0.0234 -> 0.03, 0.123 -> 0.13.
3. Show the value with the same number of decimals as the rounded
   uncertainty.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

PLACEHOLDER = "—"

# |u| / multiplier within this of an integer is treated as that integer
# (0.05 / 0.01 must stay 5, not creep to 6 through binary noise)
_RATIO_SNAP = 1e-9


@dataclass(frozen=True)
class RoundedUncertainty:
    rounded_value: float
    decimal_places: int


@dataclass(frozen=True)
class FormattedMeasurement:
    value_text: str
    uncertainty_text: str


def round_uncertainty(u: float) -> RoundedUncertainty:
    if u is None or math.isnan(u) or u == 0:
        return RoundedUncertainty(rounded_value=0.0, decimal_places=0)
    if math.isinf(u):
        return RoundedUncertainty(rounded_value=math.inf, decimal_places=0)

    abs_u = abs(float(u))
    exponent = math.floor(math.log10(abs_u))
    first_digit = math.floor(abs_u / 10.0**exponent)
    if first_digit >= 10:
        # log10 landed just below an exact power of ten
        exponent += 1
        first_digit = 1

    sig = 2 if first_digit == 1 else 1
    multiplier = 10.0 ** (exponent - (sig - 1))
    ratio = abs_u / multiplier
    nearest = round(ratio)
    steps = nearest if abs(ratio - nearest) < _RATIO_SNAP else math.ceil(ratio)
    rounded = steps * multiplier

    decimals = max(0, -math.floor(math.log10(rounded)) + (sig - 1))
    return RoundedUncertainty(rounded_value=round(rounded, decimals), decimal_places=int(decimals))


def format_value(value: float, decimals: int) -> str:
    """Fixed-decimal text, or the placeholder for NaN."""
    if value is None or math.isnan(value):
        return PLACEHOLDER
    return f"{value:.{max(0, int(decimals))}f}"


def _plain(value: float) -> str:
    """Unrounded text: integers without a trailing .0, otherwise the shortest repr."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_measurement(value: float, uncertainty: float) -> FormattedMeasurement:
    """Render a value/uncertainty pair with matching decimal places."""
    if value is None or math.isnan(value):
        return FormattedMeasurement(PLACEHOLDER, PLACEHOLDER)
    if uncertainty is None or math.isnan(uncertainty) or uncertainty == 0:
        return FormattedMeasurement(_plain(value), "0")

    ru = round_uncertainty(uncertainty)
    if math.isinf(ru.rounded_value):
        return FormattedMeasurement(_plain(value), PLACEHOLDER)
    return FormattedMeasurement(
        value_text=format_value(value, ru.decimal_places),
        uncertainty_text=format_value(ru.rounded_value, ru.decimal_places),
    )
