"""
Central definitions for user-editable meta file paths.

Scripts should use get_meta_paths(repo_root) so that moving files only
requires changing this module.

Layout (all user inputs in one place: meta/):
  meta/
    series/        - one YAML per measurement series: {series_id}.yml
    config.yml     - engine settings (perturbation step, tolerances, ...)
"""
from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace


def get_meta_paths(repo_root: Path) -> SimpleNamespace:
    """Return paths to user-editable meta files under repo_root/meta/."""
    root = Path(repo_root)
    meta = root / "meta"
    return SimpleNamespace(
        # Series definitions and raw readings: meta/series/{series_id}.yml
        series_dir=meta / "series",
        # Engine settings
        config=meta / "config.yml",
    )
