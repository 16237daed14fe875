# -*- coding: utf-8 -*-
"""Logging setup shared by the entry point and utilities."""

# Import logging.
import logging


def setup_logging(level: str = "INFO", rank: int = 0) -> None:
    """Configure root logging once; the rank tag keeps MPI output distinguishable."""
    numeric = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format=f"%(asctime)s [rank{rank}] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
