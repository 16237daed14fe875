#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""LSBAM entry point.

This file is intentionally small:
- parse CLI
- load+merge configuration
- initialize MPI (optional)
- stream the population and run the simulation (or the storm-only preview)

All real logic lives in the `lsbam/` package.
"""

# Import logging (for module-level logger).
import logging

# Import stdlib helpers.
import importlib.util
import json
import sys
from typing import Any, Dict, List, Optional

# Import lightweight config helpers early for shared utilities.
from lsbam.config import deep_update, default_config, load_json


def _require_numpy() -> None:
    """Validate that NumPy is available before importing LSBAM modules."""
    if importlib.util.find_spec("numpy") is None:
        raise ModuleNotFoundError(
            "NumPy is required to run LSBAM. Activate your virtual environment "
            f"or install it with '{sys.executable} -m pip install numpy'."
        )


def _apply_overrides(cfg: Dict[str, Any], args: Any) -> Dict[str, Any]:
    """Apply CLI overrides (only if options were explicitly supplied)."""
    shards_cfg = cfg.setdefault("compute", {}).setdefault("shards", {})
    if args.backend is not None:
        shards_cfg["backend"] = args.backend
    if args.workers is not None:
        shards_cfg["workers"] = args.workers
    if args.chunk_size is not None:
        shards_cfg["chunk_size"] = args.chunk_size
    if args.behavior_seed is not None:
        cfg["model"]["behavior_seed"] = args.behavior_seed
    if args.population is not None:
        cfg["population"]["path"] = args.population
    if args.synthetic is not None:
        # An explicit synthetic size wins over any configured file.
        cfg["population"]["path"] = None
        cfg["population"]["synthetic"] = args.synthetic
    if args.results_dir is not None:
        cfg["output"]["results_dir"] = args.results_dir
    if args.out_nc is not None:
        cfg["output"]["out_netcdf"] = args.out_nc
    mpi_cfg_overrides = cfg["compute"].setdefault("mpi", {})
    if args.mpi_mode is not None:
        if args.mpi_mode == "enabled":
            mpi_cfg_overrides["enabled"] = True
        elif args.mpi_mode == "disabled":
            mpi_cfg_overrides["enabled"] = False
        else:
            mpi_cfg_overrides["enabled"] = None
    return cfg


def _resolve_seeds(cfg: Dict[str, Any], cli_seeds: Optional[List[int]]) -> List[int]:
    """CLI seeds, else the configured seed, else today's date."""
    from lsbam.time_utils import daily_seed

    if cli_seeds:
        return [int(s) for s in cli_seeds]
    seed = cfg.get("model", {}).get("seed", None)
    if seed is not None:
        return [int(seed)]
    return [daily_seed()]


def _run_storm(cfg: Dict[str, Any], args: Any) -> None:
    """Storm-only preview: write the 24 h storm timeline as JSON."""
    from lsbam.storm import StormConfig, simulate_day
    from lsbam.time_utils import TICKS_PER_DAY

    seed = _resolve_seeds(cfg, [args.seed] if args.seed is not None else None)[0]
    n_ticks = args.ticks if args.ticks is not None else int(cfg["model"].get("ticks", TICKS_PER_DAY))
    frames = simulate_day(seed, StormConfig.from_dict(cfg.get("storm", {})), n_ticks=n_ticks)
    payload = {"seed": seed, "totalTicks": len(frames), "data": frames}
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        logging.getLogger("lsbam").info("Storm timeline written to %s", args.out)
    else:
        json.dump(payload, sys.stdout)
        sys.stdout.write("\n")


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point."""
    _require_numpy()

    # Import CLI parser.
    from lsbam.cli import parse_args

    # Import logging configuration.
    from lsbam.logging_utils import setup_logging

    # Parse command-line arguments into a structured namespace.
    args = parse_args(argv)

    # Load the built-in default configuration dictionary.
    cfg = default_config()

    # Merge the user-provided config file onto the defaults.
    if args.config:
        cfg = deep_update(cfg, load_json(args.config))

    if args.command == "storm":
        setup_logging(args.log_level, 0)
        _run_storm(cfg, args)
        return

    cfg = _apply_overrides(cfg, args)

    # Import MPI utilities.
    from lsbam.mpi_utils import HAVE_MPI, MPI, MPIConfig, MPITransport, initialize_mpi, run_shard_service

    # Import population sources.
    from lsbam.population import iter_population_file, synthetic_population

    # Import shard behavior config.
    from lsbam.shard import BehaviorConfig

    # Import simulation driver.
    from lsbam.simulation import run_simulation

    # Resolve MPI preferences and initialize communicator after config parsing.
    shards_cfg = cfg["compute"]["shards"]
    mpi_raw = cfg["compute"].get("mpi", {})
    if shards_cfg.get("backend") == "mpi" and mpi_raw.get("enabled") is None:
        mpi_raw = dict(mpi_raw, enabled=True)
    world_size_guess = MPI.COMM_WORLD.Get_size() if HAVE_MPI else 1
    mpi_cfg = MPIConfig.from_dict(mpi_raw, world_size=world_size_guess)
    comm, rank, size, mpi_world_size, mpi_active = initialize_mpi(mpi_cfg)

    # Configure logging (include rank so MPI logs are distinguishable).
    setup_logging(args.log_level, rank)
    logger = logging.getLogger("lsbam")
    if rank == 0 and not mpi_active and mpi_world_size > 1:
        logger.info(
            "MPI explicitly disabled in configuration; running on rank0 only (world_size=%d).",
            mpi_world_size,
        )

    transport = None
    if mpi_active:
        if rank != 0:
            # Worker ranks own one shard each and serve the coordinator until it stops.
            run_shard_service(comm, BehaviorConfig.from_dict(cfg.get("agents", {})), cfg["model"].get("behavior_seed"))
            return
        shards_cfg["backend"] = "mpi"
        transport = MPITransport(comm)
        logger.info("Distributed memory: enabled (coordinator + %d shard ranks)", size - 1)
    elif shards_cfg.get("backend") == "mpi":
        raise ValueError("Shard backend 'mpi' requires mpi4py and an MPI launcher with at least 2 ranks.")

    pop_cfg = cfg.get("population", {})
    if pop_cfg.get("path"):
        records = iter_population_file(str(pop_cfg["path"]))
        logger.info("Streaming population from %s", pop_cfg["path"])
    else:
        n = int(pop_cfg.get("synthetic", 1000))
        records = synthetic_population(n, seed=pop_cfg.get("synthetic_seed"))
        logger.info("Synthesizing %d agents", n)

    seeds = _resolve_seeds(cfg, args.seed)
    reports = run_simulation(cfg, records, seeds, transport=transport)

    for report in reports:
        logger.info(
            "Seed %d: %d agents, %d casualties (A=%d, B=%d)",
            report["meta"]["seed"],
            report["summary"]["totalAgents"],
            report["summary"]["totalCasualties"],
            report["stats"]["protocolA"]["struck"],
            report["stats"]["protocolB"]["struck"],
        )
    logger.info("LSBAM finished %d run(s).", len(reports))


if __name__ == "__main__":
    main()
