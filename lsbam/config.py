# -*- coding: utf-8 -*-
"""Configuration handling for LSBAM.

The model is configured via:
1) A JSON configuration file (config.json), optional.
2) Optional CLI overrides (handled in cli.py / main.py).
"""

# Import JSON for reading configuration files.
import json

# Import typing primitives.
from typing import Any, Dict


def default_config() -> Dict[str, Any]:
    """Return a complete default configuration dictionary."""
    return {
        "model": {
            "seed": None,
            "ticks": 288,
            "behavior_seed": None,
            "log_every": 48,
        },
        "storm": {
            "bounds": {
                "south": 24.5,
                "north": 31.0,
                "west": -87.6,
                "east": -80.0,
            },
            "calm_threshold": 0.2,
            "active_window": [80, 250],
            "active_spawn_chance": 0.9,
            "idle_spawn_chance": 0.3,
        },
        "agents": {
            "grid_cell_deg": 0.1,
            "search_radius_cells": 2,
            "warning_radius_mi": 10.0,
            "shelter_minutes": 30,
            "proximity_shelter_mi": 2.0,
            "lethal_radius_mi": 0.1,
        },
        "population": {
            "path": None,
            "synthetic": 1000,
            "synthetic_seed": None,
        },
        "compute": {
            "shards": {
                "backend": "thread",
                "workers": None,
                "chunk_size": 50000,
            },
            "mpi": {
                "enabled": None,
            },
        },
        "output": {
            "results_dir": "results",
            "write_json": True,
            "out_netcdf": None,
            "Conventions": "CF-1.10",
            "title": "LSBAM lightning exposure timeline",
            "institution": "",
        },
    }


def load_json(path: str) -> Dict[str, Any]:
    """Load a JSON file into a Python dictionary."""
    # Open the file with UTF-8 encoding.
    with open(path, "r", encoding="utf-8") as f:
        # Parse JSON into Python dict.
        return json.load(f)


def deep_update(base: Dict[str, Any], other: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dict `other` into dict `base` (non-destructive)."""
    # Start from a shallow copy of base.
    out = dict(base)
    # Iterate keys from other.
    for k, v in other.items():
        # If both sides are dicts, merge recursively.
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_update(out[k], v)  # type: ignore[arg-type]
        else:
            # Otherwise override.
            out[k] = v
    # Return merged dictionary.
    return out
