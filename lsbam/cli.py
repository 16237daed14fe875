# -*- coding: utf-8 -*-
"""Command line interface for LSBAM."""

# Import argparse for CLI parsing.
import argparse

# Import typing primitives.
from typing import List, Optional


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    # Create argument parser with a program name.
    ap = argparse.ArgumentParser(prog="lsbam", description="Lightning Sheltering Behavior Assessment Model")
    # Configuration file path.
    ap.add_argument("--config", default=None, help="Path to configuration JSON file (merged over defaults).")
    # Logging level.
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sub = ap.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the casualty simulation for one or more seeds.")
    run.add_argument("--seed", type=int, action="append", default=None,
                     help="Storm seed (repeatable). Defaults to today's date as YYYYMMDD.")
    run.add_argument("--population", default=None, help="Population JSON file (array, one record per line).")
    run.add_argument("--synthetic", type=int, default=None, help="Synthesize N agents instead of reading a file.")
    run.add_argument("--backend", default=None, choices=["inline", "thread", "process", "mpi"],
                     help="Shard worker backend override.")
    run.add_argument("--workers", type=int, default=None, help="Number of shards (local backends).")
    run.add_argument("--chunk-size", type=int, default=None, help="Agents per distribution batch.")
    run.add_argument("--behavior-seed", type=int, default=None,
                     help="Seed agent behavior rolls for reproducible casualties.")
    run.add_argument("--results-dir", default=None, help="Directory for sim_<seed>_<ms>.json reports.")
    run.add_argument("--out-nc", default=None, help="NetCDF stats time series path ('{seed}' is substituted).")
    run.add_argument(
        "--mpi-mode",
        default=None,
        choices=["auto", "enabled", "disabled"],
        help="Force MPI on/off or auto-detect based on launcher.",
    )

    storm = sub.add_parser("storm", help="Generate the storm-only timeline for a seed.")
    storm.add_argument("--seed", type=int, default=None, help="Storm seed (default: today's date).")
    storm.add_argument("--ticks", type=int, default=None, help="Number of ticks (default 288).")
    storm.add_argument("--out", default=None, help="Write frames to this JSON file instead of stdout.")

    # Return parsed args.
    args = ap.parse_args(argv)
    if args.command is None:
        args.command = "run"
        for name, default in (
            ("seed", None), ("population", None), ("synthetic", None), ("backend", None),
            ("workers", None), ("chunk_size", None), ("behavior_seed", None),
            ("results_dir", None), ("out_nc", None), ("mpi_mode", None),
        ):
            setattr(args, name, default)
    return args
