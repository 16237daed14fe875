# -*- coding: utf-8 -*-
"""Core simulation driver for LSBAM."""

# Import typing primitives.
from typing import Any, Dict, Iterable, List, Optional

# Import logging.
import logging

# Import timing.
from time import perf_counter

# Import local modules.
from .coordinator import ShardCoordinator
from .io_report import write_report_json, write_timeline_netcdf
from .shard import BehaviorConfig
from .storm import StormConfig, StormEngine
from .time_utils import MINUTES_PER_TICK, TICKS_PER_DAY, utc_now_iso
from .workers import ShardPoolConfig

# Create a logger for this module.
logger = logging.getLogger("lsbam")


class SimulationRunner:
    """Runs one seeded day against an already-loaded coordinator.

    Ticks are strictly sequential: each storm frame is fully processed by every
    shard before the next one is generated.
    """

    def __init__(
        self,
        coordinator: ShardCoordinator,
        storm_cfg: StormConfig | None = None,
        n_ticks: int = TICKS_PER_DAY,
        log_every: int = 48,
    ) -> None:
        self.coordinator = coordinator
        self.storm_cfg = storm_cfg if storm_cfg is not None else StormConfig.from_dict({})
        self.n_ticks = int(n_ticks)
        self.log_every = int(log_every)

    def run(self, seed: int) -> Dict[str, Any]:
        """Execute every tick for `seed` and return the report dictionary."""
        logger.info("--- STARTING SIMULATION (seed: %d) ---", int(seed))
        t0 = perf_counter()

        storm = StormEngine(seed, self.storm_cfg)
        self.coordinator.reset()

        timeline: List[Dict[str, Any]] = []
        stats: Dict[str, Dict[str, int]] = self.coordinator.stats.to_dict()
        for i in range(self.n_ticks):
            frame = storm.tick()
            stats = self.coordinator.tick(frame["cells"], frame["lightning"], i)

            if self.log_every > 0 and i > 0 and i % self.log_every == 0:
                struck = stats["protocolA"]["struck"] + stats["protocolB"]["struck"]
                logger.info(
                    "[%d%%] Time: %dm | Storms: %d | Total casualties: %d",
                    round(100.0 * i / self.n_ticks),
                    frame["tick"] * MINUTES_PER_TICK,
                    len(frame["cells"]),
                    struck,
                )

            timeline.append({
                "tick": frame["tick"],
                "timestamp": frame["timestamp"],
                "cells": frame["cells"],
                "lightning": frame["lightning"],
                "stats": {k: dict(v) for k, v in stats.items()},
            })

        report = build_report(int(seed), stats, timeline)
        logger.info(
            "--- SIMULATION COMPLETE --- total struck: %d (A=%d, B=%d) in %.2fs",
            report["summary"]["totalCasualties"],
            stats["protocolA"]["struck"],
            stats["protocolB"]["struck"],
            perf_counter() - t0,
        )
        return report


def build_report(seed: int, stats: Dict[str, Dict[str, int]], timeline: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Assemble the persisted report structure."""
    a, b = stats["protocolA"], stats["protocolB"]
    return {
        "meta": {
            "seed": int(seed),
            "dateRun": utc_now_iso(),
            "duration": "24 Hours",
        },
        "summary": {
            "totalAgents": int(a["count"]) + int(b["count"]),
            "totalCasualties": int(a["struck"]) + int(b["struck"]),
        },
        "stats": {"protocolA": dict(a), "protocolB": dict(b)},
        "timeline": timeline,
    }


def build_coordinator(cfg: Dict[str, Any], transport: Any = None) -> ShardCoordinator:
    """Create a coordinator from configuration (transport overrides the backend)."""
    compute_cfg = cfg.get("compute", {})
    pool = ShardPoolConfig.from_dict(compute_cfg.get("shards", {}))
    behavior = BehaviorConfig.from_dict(cfg.get("agents", {}))
    behavior_seed = cfg.get("model", {}).get("behavior_seed", None)
    return ShardCoordinator(pool, behavior, behavior_seed, transport=transport)


def run_simulation(
    cfg: Dict[str, Any],
    records: Iterable[Dict[str, Any]],
    seeds: Iterable[int],
    transport: Any = None,
) -> List[Dict[str, Any]]:
    """Load the population once, run every seed, persist each report."""
    mcfg = cfg.get("model", {})
    out_cfg = cfg.get("output", {})
    storm_cfg = StormConfig.from_dict(cfg.get("storm", {}))

    reports: List[Dict[str, Any]] = []
    with build_coordinator(cfg, transport) as coordinator:
        logger.info("Parsing agents and assigning behavior profiles...")
        coordinator.load_population(records)
        runner = SimulationRunner(
            coordinator,
            storm_cfg,
            n_ticks=int(mcfg.get("ticks", TICKS_PER_DAY)),
            log_every=int(mcfg.get("log_every", 48)),
        )
        for seed in seeds:
            report = runner.run(int(seed))
            results_dir: Optional[str] = out_cfg.get("results_dir")
            if out_cfg.get("write_json", True) and results_dir:
                write_report_json(report, results_dir)
            out_nc = out_cfg.get("out_netcdf")
            if out_nc:
                write_timeline_netcdf(str(out_nc).format(seed=int(seed)), report, cfg)
            reports.append(report)
    return reports
