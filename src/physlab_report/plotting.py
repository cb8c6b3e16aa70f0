# src/physlab_report/plotting.py
"""
Scatter-with-errorbars plot of a series and its least-squares line.

All figures use apply_paper_style():

    with plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
        ...
        paper_savefig(fig, "out.png")
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib import font_manager as fm

from .aggregation import aggregate_row
from .config import DEFAULT_SETTINGS, EngineSettings
from .model import QuantityConfig, Series
from .regression import build_regression_points, fit_linear_regression
from .rounding import format_measurement

PAPER_FIGSIZE_SINGLE = (3.5, 2.6)
PAPER_ERRORBAR_COLOR = "0.45"
PAPER_POINT_COLOR = "#0072B2"
PAPER_FIT_COLOR = "#D55E00"


def apply_paper_style() -> dict:
    """
    rcParams for report figures.

    Font priority: Arial > Helvetica > Liberation Sans > DejaVu Sans; 6-7 pt text,
    0.6-0.8 pt lines, PNG at 600 dpi.
    """
    available = {f.name for f in fm.fontManager.ttflist}
    font_priority = ["Arial", "Helvetica", "Liberation Sans", "DejaVu Sans"]
    return {
        "font.family": "sans-serif",
        "font.sans-serif": [f for f in font_priority if f in available] or ["DejaVu Sans"],
        "font.size": 7,
        "axes.titlesize": 8,
        "axes.labelsize": 7,
        "xtick.labelsize": 6,
        "ytick.labelsize": 6,
        "legend.fontsize": 6,
        "lines.linewidth": 0.7,
        "lines.markersize": 3,
        "lines.markeredgewidth": 0.3,
        "axes.linewidth": 0.6,
        "axes.edgecolor": "0.3",
        "axes.labelcolor": "0.15",
        "axes.titlepad": 4,
        "axes.labelpad": 3,
        "axes.axisbelow": True,
        "xtick.major.width": 0.5,
        "ytick.major.width": 0.5,
        "xtick.major.size": 3,
        "ytick.major.size": 3,
        "xtick.color": "0.3",
        "ytick.color": "0.3",
        "xtick.direction": "out",
        "ytick.direction": "out",
        "axes.grid": False,
        "grid.linewidth": 0.3,
        "grid.alpha": 0.3,
        "legend.frameon": True,
        "legend.framealpha": 0.9,
        "legend.edgecolor": "0.7",
        "figure.facecolor": "white",
        "figure.dpi": 100,
        "savefig.dpi": 600,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.02,
        "savefig.format": "png",
    }


def paper_savefig(fig, path, **kwargs):
    """fig.savefig with 600 dpi, tight bbox and white background unless overridden."""
    defaults = {
        "dpi": 600,
        "bbox_inches": "tight",
        "pad_inches": 0.02,
        "facecolor": "white",
        "edgecolor": "white",
    }
    defaults.update(kwargs)
    fig.savefig(path, **defaults)


def _axis_label(q: QuantityConfig) -> str:
    # calculations run in scaled units; only show the typed unit when no scaling applies
    unit = q.unit if float(q.multiplier or 1.0) == 1.0 else ""
    label = q.name or q.symbol
    return f"{label} ({q.symbol}, {unit})" if unit else f"{label} ({q.symbol})"


def plot_series_fit(
    series: Series,
    out_path: Path,
    settings: Optional[EngineSettings] = None,
) -> Optional[Path]:
    """
    Plot the fitted points with their scaled uncertainties as error bars and,
    when a fit exists, the fitted line with m and b in the legend.
    Returns None when there is nothing to plot.
    """
    settings = settings or DEFAULT_SETTINGS
    points = build_regression_points(series, settings)
    if not points:
        return None

    xerr, yerr = [], []
    for p in points:
        agg = aggregate_row(series.rows[p.row_index], series, settings)
        xerr.append(agg.indep_uncertainty_scaled)
        yerr.append(agg.dep_uncertainty_scaled)
    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)
    xerr_arr = np.nan_to_num(np.abs(np.array(xerr, dtype=float)))
    yerr_arr = np.nan_to_num(np.abs(np.array(yerr, dtype=float)))

    fit = fit_linear_regression(points, settings)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    with plt.rc_context(apply_paper_style()):
        fig, ax = plt.subplots(figsize=PAPER_FIGSIZE_SINGLE)
        ax.errorbar(
            x,
            y,
            xerr=xerr_arr,
            yerr=yerr_arr,
            fmt="o",
            color=PAPER_POINT_COLOR,
            ecolor=PAPER_ERRORBAR_COLOR,
            elinewidth=0.5,
            capsize=1.5,
            label="data",
        )
        if fit is not None:
            xs = np.linspace(float(np.min(x)), float(np.max(x)), 100)
            m = format_measurement(fit.slope, fit.sigma_slope)
            b = format_measurement(fit.intercept, fit.sigma_intercept)
            label = f"m = {m.value_text} ± {m.uncertainty_text}\nb = {b.value_text} ± {b.uncertainty_text}"
            ax.plot(xs, fit.predict(xs), color=PAPER_FIT_COLOR, label=label)
            ax.text(
                0.98,
                0.02,
                f"R² = {fit.r2:.4f}",
                ha="right",
                va="bottom",
                transform=ax.transAxes,
                fontsize=6,
            )
        ax.set_title(series.name or series.id)
        ax.set_xlabel(_axis_label(series.independent))
        ax.set_ylabel(_axis_label(series.dependent))
        ax.legend(loc="upper left")
        fig.tight_layout(pad=0.3)
        paper_savefig(fig, out_path)
        plt.close(fig)
    return out_path
