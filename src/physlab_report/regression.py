# src/physlab_report/regression.py
"""
Ordinary least squares y = m*x + b over the series' aggregated rows.

Closed-form sums as taught in the lab course:

    delta   = n*Sxx - Sx^2
    m       = (n*Sxy - Sx*Sy) / delta
    b       = (Sxx*Sy - Sx*Sxy) / delta
    sigma_y = sqrt(sum(r_i^2) / (n - 2)),  r_i = m*x_i + b - y_i
    sigma_m = sigma_y * sqrt(n / delta)
    sigma_b = sigma_y * sqrt(Sxx / delta)
    R^2     = (n*Sxy - Sx*Sy)^2 / (delta * (n*Syy - Sy^2))

Fewer than two points or delta ~ 0 (all x equal) is "no fit" (None).
With exactly two points the line is exact and has no residual degrees of
freedom: sigmas are reported as 0.0 with has_uncertainty=False.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as scipy_stats

from .aggregation import aggregate_row
from .config import DEFAULT_SETTINGS, EngineSettings
from .model import Series


@dataclass(frozen=True)
class RegressionPoint:
    row_index: int
    x: float
    y: float
    x2: float
    y2: float
    xy: float


@dataclass(frozen=True)
class FitResult:
    n: int
    sum_x: float
    sum_y: float
    sum_x2: float
    sum_y2: float
    sum_xy: float
    delta: float
    slope: float
    intercept: float
    sigma_y: float
    sigma_slope: float
    sigma_intercept: float
    r2: float
    dof: int
    has_uncertainty: bool

    def predict(self, x):
        """Evaluate the fitted line at x (scalar or array)."""
        if np.ndim(x):
            return self.slope * np.asarray(x, dtype=float) + self.intercept
        return self.slope * float(x) + self.intercept

    def confidence_interval(self, confidence: float = 0.95) -> Optional[Tuple[float, float]]:
        """
        Half-widths (slope, intercept) at the given confidence using the
        Student t quantile with n - 2 degrees of freedom. None without
        residual degrees of freedom.
        """
        if not self.has_uncertainty:
            return None
        k = float(scipy_stats.t.ppf((1.0 + confidence) / 2.0, df=self.dof))
        return k * self.sigma_slope, k * self.sigma_intercept


def build_regression_points(series: Series, settings: Optional[EngineSettings] = None) -> List[RegressionPoint]:
    """
    One point per row from the unit-scaled averages. Rows where x and y are
    both zero (typically empty rows) or either is NaN are left out.
    """
    settings = settings or DEFAULT_SETTINGS
    points: List[RegressionPoint] = []
    for idx, row in enumerate(series.rows):
        agg = aggregate_row(row, series, settings)
        x, y = float(agg.indep_avg), float(agg.dep_avg)
        if math.isnan(x) or math.isnan(y):
            continue
        if x == 0.0 and y == 0.0:
            continue
        points.append(RegressionPoint(row_index=idx, x=x, y=y, x2=x * x, y2=y * y, xy=x * y))
    return points


def fit_linear_regression(
    points: Sequence[RegressionPoint],
    settings: Optional[EngineSettings] = None,
) -> Optional[FitResult]:
    """Least-squares line through the points, or None when no fit is possible."""
    settings = settings or DEFAULT_SETTINGS
    n = len(points)
    if n < 2:
        return None

    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)
    sum_x = float(np.sum(x))
    sum_y = float(np.sum(y))
    sum_x2 = float(np.sum(x * x))
    sum_y2 = float(np.sum(y * y))
    sum_xy = float(np.sum(x * y))

    if float(np.ptp(x)) == 0.0:
        return None
    delta = n * sum_x2 - sum_x**2
    # cancellation noise in delta scales with n*Sxx
    if abs(delta) <= settings.delta_tolerance * max(1.0, n * sum_x2):
        return None

    slope = (n * sum_xy - sum_x * sum_y) / delta
    intercept = (sum_x2 * sum_y - sum_x * sum_xy) / delta

    dof = n - 2
    if dof > 0:
        residuals = slope * x + intercept - y
        sigma_y = math.sqrt(float(np.sum(residuals**2)) / dof)
        # cancellation in delta can leave a tiny negative ratio; clamp before sqrt
        sigma_slope = sigma_y * math.sqrt(max(n / delta, 0.0))
        sigma_intercept = sigma_y * math.sqrt(max(sum_x2 / delta, 0.0))
    else:
        sigma_y = sigma_slope = sigma_intercept = 0.0

    r_den = delta * (n * sum_y2 - sum_y**2)
    r2 = (n * sum_xy - sum_x * sum_y) ** 2 / r_den if r_den != 0 else 0.0

    return FitResult(
        n=n,
        sum_x=sum_x,
        sum_y=sum_y,
        sum_x2=sum_x2,
        sum_y2=sum_y2,
        sum_xy=sum_xy,
        delta=float(delta),
        slope=float(slope),
        intercept=float(intercept),
        sigma_y=float(sigma_y),
        sigma_slope=float(sigma_slope),
        sigma_intercept=float(sigma_intercept),
        r2=float(r2),
        dof=int(dof),
        has_uncertainty=dof > 0,
    )


def fit_series(series: Series, settings: Optional[EngineSettings] = None) -> Optional[FitResult]:
    return fit_linear_regression(build_regression_points(series, settings), settings)
