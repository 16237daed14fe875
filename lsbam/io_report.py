# -*- coding: utf-8 -*-
"""Report persistence: JSON reports keyed by seed and NetCDF stat time series."""

# Import JSON for reports and provenance attributes.
import json

# Import typing primitives.
from typing import Any, Dict, Optional

# Import stdlib helpers.
import logging
import re
import time
from pathlib import Path

# Import numpy.
import numpy as np

# Import xarray.
import xarray as xr

# Import local helpers.
from .agents import PROTOCOL_NAMES
from .time_utils import run_day, utc_now_iso

logger = logging.getLogger("lsbam.io")

# Per-run time axis; the reference date is the day the run was made.
TIME_UNITS = "minutes since {day} 00:00:00"

_REPORT_RE = re.compile(r"^sim_(?P<seed>-?\d+)_(?P<stamp>\d+)\.json$")
PROTOCOL_KEYS = ("protocolA", "protocolB")


def report_filename(seed: int, stamp_ms: Optional[int] = None) -> str:
    """Return 'sim_<seed>_<epoch ms>.json'."""
    stamp = int(stamp_ms) if stamp_ms is not None else int(time.time() * 1000)
    return f"sim_{int(seed)}_{stamp}.json"


def write_report_json(report: Dict[str, Any], results_dir: str, indent: Optional[int] = 2) -> Path:
    """Write a report into `results_dir` (created if needed); return its path."""
    out_dir = Path(results_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / report_filename(report["meta"]["seed"])
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=indent)
    logger.info("Report saved to: %s", path)
    return path


def find_latest_report(results_dir: str, seed: int) -> Optional[Path]:
    """Return the most recent report for `seed`, or None if there is none."""
    out_dir = Path(results_dir)
    if not out_dir.is_dir():
        return None
    best: Optional[Path] = None
    best_stamp = -1
    for p in out_dir.iterdir():
        m = _REPORT_RE.match(p.name)
        if m is None or int(m.group("seed")) != int(seed):
            continue
        stamp = int(m.group("stamp"))
        if stamp > best_stamp:
            best, best_stamp = p, stamp
    return best


def load_report(path: str | Path) -> Dict[str, Any]:
    """Load a JSON report."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def time_units(report: Dict[str, Any]) -> str:
    """CF time units anchored at midnight (UTC) of the report's run date."""
    return TIME_UNITS.format(day=run_day(report.get("meta", {}).get("dateRun")).isoformat())


def write_timeline_netcdf(out_path: str, report: Dict[str, Any], cfg: Dict[str, Any]) -> None:
    """Write per-tick protocol stats as a CF-friendly NetCDF time series."""
    out_cfg = cfg.get("output", {})
    timeline = report.get("timeline", [])
    minutes = np.array([int(fr["timestamp"]) for fr in timeline], dtype=np.int32)

    def _series(key: str) -> np.ndarray:
        return np.array(
            [[fr["stats"][p][key] for p in PROTOCOL_KEYS] for fr in timeline],
            dtype=np.int64,
        ).reshape(len(timeline), len(PROTOCOL_KEYS))

    ds = xr.Dataset()
    ds = ds.assign_coords({
        "time": xr.DataArray(minutes, dims=("time",), attrs={"long_name": "time", "units": time_units(report)}),
        "protocol": xr.DataArray(np.array(PROTOCOL_NAMES), dims=("protocol",), attrs={"long_name": "sheltering_protocol"}),
    })
    ds["outdoors_minutes"] = xr.DataArray(
        _series("outdoorsMinutes"),
        dims=("time", "protocol"),
        attrs={"long_name": "cumulative_outdoor_agent_minutes", "units": "min"},
    )
    ds["struck"] = xr.DataArray(
        _series("struck"),
        dims=("time", "protocol"),
        attrs={"long_name": "cumulative_struck_agents", "units": "1"},
    )
    ds["active_cells"] = xr.DataArray(
        np.array([len(fr["cells"]) for fr in timeline], dtype=np.int32),
        dims=("time",),
        attrs={"long_name": "active_storm_cells", "units": "1"},
    )
    ds["lightning_strikes"] = xr.DataArray(
        np.array([len(fr["lightning"]) for fr in timeline], dtype=np.int32),
        dims=("time",),
        attrs={"long_name": "lightning_strikes_per_tick", "units": "1"},
    )

    meta = report.get("meta", {})
    ds.attrs["title"] = out_cfg.get("title", "LSBAM lightning exposure timeline")
    ds.attrs["institution"] = out_cfg.get("institution", "")
    ds.attrs["source"] = "LSBAM"
    ds.attrs["seed"] = int(meta.get("seed", 0))
    ds.attrs["history"] = f"{utc_now_iso()}: timeline written by LSBAM"
    ds.attrs["Conventions"] = out_cfg.get("Conventions", "CF-1.10")
    ds.attrs["lsbam_config_json"] = json.dumps(cfg, separators=(",", ":"), sort_keys=True)

    ds.to_netcdf(out_path)
    logger.info("Timeline NetCDF written to: %s", out_path)
