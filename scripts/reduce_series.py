from __future__ import annotations

import argparse
import sys
import warnings
from pathlib import Path

# Ensure local src/ is used (avoid importing an older installed package)
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# Use non-interactive backend so script does not block on display (headless / IDE / SSH)
import matplotlib
matplotlib.use("Agg")

from physlab_report.config import load_settings  # noqa: E402
from physlab_report.indirect import compute_derived_quantities  # noqa: E402
from physlab_report.loader import load_series  # noqa: E402
from physlab_report.meta_paths import get_meta_paths  # noqa: E402
from physlab_report.plotting import plot_series_fit  # noqa: E402
from physlab_report.regression import fit_series  # noqa: E402
from physlab_report.rounding import format_measurement  # noqa: E402
from physlab_report.summary import build_row_table, write_series_outputs  # noqa: E402


def main() -> None:
    p = argparse.ArgumentParser(
        description="Reduce one measurement series: row averages, derived quantities and least-squares fit.",
    )
    p.add_argument("--series", required=True, help="Path to series YAML (e.g. meta/series/pendulum.yml).")
    p.add_argument(
        "--config",
        default=None,
        help="Path to engine settings YAML. Default: meta/config.yml when it exists.",
    )
    p.add_argument("--out_dir", default="data/processed", help="Directory to write output CSV/JSON.")
    p.add_argument(
        "--run_id",
        default=None,
        help="Output subdirectory name. If omitted, the series id is used.",
    )
    p.add_argument("--write_plot", type=int, default=1, choices=[0, 1], help="Write fit.png (1) or not (0).")
    p.add_argument(
        "--debug",
        action="store_true",
        help="Print resolved settings and per-row values.",
    )
    args = p.parse_args()

    series_path = Path(args.series)
    if not series_path.exists():
        raise FileNotFoundError(f"--series not found: {series_path}")

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise FileNotFoundError(f"--config not found: {config_path}")
    else:
        default_config = get_meta_paths(REPO_ROOT).config
        config_path = default_config if default_config.exists() else None

    settings = load_settings(config_path)
    series = load_series(series_path, settings.default_precision)
    run_id = args.run_id if args.run_id else series.id

    if args.debug:
        print(f"Settings: {settings}")

    inputs = [series_path] + ([config_path] if config_path is not None else [])
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        paths = write_series_outputs(series, Path(args.out_dir), run_id, settings=settings, input_paths=inputs)
    for w in caught:
        print(f"Warning: {w.message}")

    for key, path in paths.items():
        print(f"Saved {key}: {path}")

    fit = fit_series(series, settings)
    if fit is None:
        print("No fit: fewer than two usable rows or all x values equal.")
    else:
        m = format_measurement(fit.slope, fit.sigma_slope)
        b = format_measurement(fit.intercept, fit.sigma_intercept)
        print(f"Fit: n={fit.n}, m = {m.value_text} ± {m.uncertainty_text}, "
              f"b = {b.value_text} ± {b.uncertainty_text}, R^2 = {fit.r2:.5f}")

    if args.debug:
        rows = build_row_table(series, settings)
        print(rows.to_string(index=False))
        for idx, row in enumerate(series.rows):
            for res in compute_derived_quantities(row, series, settings):
                fmt = format_measurement(res.value, res.uncertainty)
                print(f"  row {idx + 1}: {res.symbol} = {fmt.value_text} ± {fmt.uncertainty_text} {res.unit}")

    if int(args.write_plot) == 1:
        png = plot_series_fit(series, Path(args.out_dir) / run_id / "fit.png", settings)
        if png is None:
            print("No plottable rows; fit.png not written.")
        else:
            print(f"Saved plot: {png}")


if __name__ == "__main__":
    main()
