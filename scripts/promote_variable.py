from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure local src/ is used (avoid importing an older installed package)
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from physlab_report.loader import load_series, write_series  # noqa: E402
from physlab_report.model import ROLES, formula_issues  # noqa: E402
from physlab_report.promotion import promote_variable_role  # noqa: E402


def main() -> None:
    p = argparse.ArgumentParser(
        description="Move an auxiliary or derived quantity onto the independent or dependent axis.",
    )
    p.add_argument("--series", required=True, help="Path to series YAML.")
    p.add_argument("--source", required=True, help="Id of the auxiliary or derived quantity to promote.")
    p.add_argument("--role", required=True, choices=list(ROLES), help="Axis to move it to.")
    p.add_argument(
        "--out",
        default=None,
        help="Output YAML. Default: overwrite --series.",
    )
    args = p.parse_args()

    series_path = Path(args.series)
    if not series_path.exists():
        raise FileNotFoundError(f"--series not found: {series_path}")

    series = load_series(series_path)
    promoted = promote_variable_role(series, args.source, args.role)
    if promoted is series:
        raise ValueError(f"--source {args.source!r} is not an auxiliary or derived quantity of {series_path}")

    out_path = Path(args.out) if args.out else series_path
    write_series(promoted, out_path)
    occupant = series.axis(args.role)
    print(f"Promoted {args.source!r} to {args.role}; {occupant.id!r} moved to auxiliary quantities.")
    for issue in formula_issues(promoted):
        print(f"Warning: {issue.symbol or issue.quantity_id}: {issue.detail} ({issue.kind})")
    print(f"Saved series: {out_path}")


if __name__ == "__main__":
    main()
