# src/physlab_report/config.py
"""
Numeric settings shared by the calculation core.

Settings live in meta/config.yml (see meta_paths.get_meta_paths). Every core
function takes an optional ``settings`` argument and falls back to
DEFAULT_SETTINGS, so scripts only need to load the file once.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .loader import load_yaml


@dataclass(frozen=True)
class EngineSettings:
    # forward step used for finite-difference partial derivatives
    perturbation_step: float = 1e-5
    # |value| at or below this is treated as zero for relative errors
    zero_tolerance: float = 1e-15
    # |n*Sxx - Sx^2| at or below this times max(1, n*Sxx) means "no fit"
    delta_tolerance: float = 1e-12
    # display decimals used when a quantity does not set its own
    default_precision: int = 3
    # coverage used for fit confidence intervals
    confidence: float = 0.95


DEFAULT_SETTINGS = EngineSettings()


def settings_from_mapping(obj: Dict[str, Any]) -> EngineSettings:
    """
    Build settings from a mapping. Accepts either the keys at top level or
    nested under ``engine:``. Unknown keys are an error (typos would otherwise
    be silently ignored).
    """
    section = obj.get("engine", obj) if isinstance(obj, dict) else obj
    if section is None:
        return DEFAULT_SETTINGS
    if not isinstance(section, dict):
        raise ValueError("engine settings must be a mapping")

    known = {f.name: f.type for f in fields(EngineSettings)}
    unknown = sorted(k for k in section if k not in known)
    if unknown:
        raise ValueError(f"Unknown engine settings: {unknown}")

    updates: Dict[str, Any] = {}
    for key, value in section.items():
        if key == "default_precision":
            updates[key] = int(value)
        else:
            updates[key] = float(value)

    out = replace(DEFAULT_SETTINGS, **updates)
    if out.perturbation_step <= 0:
        raise ValueError(f"perturbation_step must be > 0, got {out.perturbation_step}")
    if not 0.0 < out.confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {out.confidence}")
    if out.default_precision < 0:
        raise ValueError(f"default_precision must be >= 0, got {out.default_precision}")
    return out


def load_settings(path: Optional[Path]) -> EngineSettings:
    """Load settings from a YAML file; None returns the defaults."""
    if path is None:
        return DEFAULT_SETTINGS
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"config not found: {path}")
    return settings_from_mapping(load_yaml(path))
