from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict[str, Any] = {
    "pose_store": {"capacity": 4096, "tolerance_ns": 5_000_000_000},
    "road_graph": {
        "connect_threshold_m": 200.0,
        "min_angle_deg": 100.0,
        "rail_cell_m": 8.0,
        "bearing_bin_deg": 12.0,
        "arrow_length_m": 10.0,
    },
    "capture": {"fps_expr": "1", "orientation_std_deg": 2.0, "out_dir": "runtime/frames"},
    "logging": {"level": "INFO"},
}


class ConfigurationError(ValueError):
    """Invalid thresholds or parameters; raised eagerly, never returned."""


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load params.yaml merged over the built-in defaults.
    A missing file yields the defaults; a malformed one raises ConfigurationError.
    """
    p = Path(path or DEFAULT_CONFIG_PATH)
    if not p.exists():
        return copy.deepcopy(DEFAULTS)
    with p.open("r") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse config {p}: {e}") from e
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config root must be a mapping: {p}")
    return _merge(DEFAULTS, loaded)
