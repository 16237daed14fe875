#!/usr/bin/env python3
"""
utils/make_population.py

Write a synthetic LSBAM population file.

The output is a JSON array with one record per line, which is exactly what
the streaming loader (`lsbam.population.iter_population_file`) expects:

    [{"id": "1", "lat": 27.1, "lon": -82.4, "job": "Plumber", "hobbies": "[Golf,Chess]"},
    {"id": "2", ...},
    ...]

Dependencies:
- Required: numpy, tqdm
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from tqdm import tqdm

from lsbam.population import synthetic_population

LOG = logging.getLogger("make_population")


def write_population(output_path: str, n_agents: int, seed: int | None = None) -> int:
    """Write `n_agents` records to `output_path`; return the number written."""
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with open(out, "w", encoding="utf-8") as f, tqdm(total=n_agents, desc="Writing agents", unit="agent") as progress:
        f.write("[")
        for rec in synthetic_population(n_agents, seed=seed):
            if written:
                f.write(",\n")
            f.write(json.dumps(rec))
            written += 1
            progress.update(1)
        f.write("]\n")
    LOG.info("Wrote %d agents to %s", written, out)
    return written


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--agents", type=int, default=100000, help="Number of agents to generate")
    parser.add_argument("--seed", type=int, default=None, help="Seed for positions/jobs/hobbies")
    parser.add_argument("--output", default="data/agents.json", help="Output JSON path")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    write_population(args.output, args.agents, seed=args.seed)


if __name__ == "__main__":
    main()
