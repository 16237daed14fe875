# -*- coding: utf-8 -*-
"""MPI utilities for LSBAM.

This module provides:
- MPI initialization (optional)
- a coordinator-side transport (rank 0) speaking to one shard per worker rank
- the shard service loop run by ranks 1..N-1

Loading is point-to-point (each batch goes to exactly one rank); once every
shard has acknowledged finalize, ticks and resets travel as collectives
(bcast out, gather back), which is a full barrier.
"""

# Import typing primitives.
from typing import Any, List, Optional, Tuple

# Import dataclass for structured configs.
from dataclasses import dataclass

# Import logging.
import logging

# Import sys for optional early exits when MPI is disabled explicitly.
import sys

# Import local shard helpers.
from .shard import AgentShard, BehaviorConfig
from .workers import MSG_FINALIZE, MSG_LOAD, MSG_STOP, behavior_rng, handle_message

logger = logging.getLogger("lsbam.mpi")

# Try importing mpi4py; allow serial fallback.
try:
    from mpi4py import MPI  # type: ignore
    HAVE_MPI = True
except Exception:
    MPI = None  # type: ignore
    HAVE_MPI = False

COORDINATOR_RANK = 0


@dataclass(frozen=True)
class MPIConfig:
    """User-facing MPI configuration resolved from JSON/CLI."""

    enabled: bool

    @classmethod
    def from_dict(cls, cfg: dict, world_size: int | None = None) -> "MPIConfig":
        """Build MPIConfig with safe defaults."""
        world = int(world_size) if world_size is not None else 1
        enabled_raw = cfg.get("enabled", None)
        enabled = bool(enabled_raw) if enabled_raw is not None else (HAVE_MPI and world > 1)
        # If mpi4py is missing, force-disable even if the user requested it.
        if enabled and not HAVE_MPI:
            enabled = False
        return cls(enabled=enabled)


def initialize_mpi(mpi_cfg: MPIConfig) -> Tuple[Any, int, int, int, bool]:
    """Return (comm, rank, size, world_size, active) honoring user MPI preferences."""
    if not HAVE_MPI:
        return None, 0, 1, 1, False

    world = MPI.COMM_WORLD
    world_rank = world.Get_rank()
    world_size = world.Get_size()

    # Single process: nothing to distribute.
    if world_size == 1:
        return None, 0, 1, 1, False

    # Launched under mpirun but disabled: keep rank 0, release the others.
    if not mpi_cfg.enabled:
        if world_rank != 0:
            MPI.Finalize()
            sys.exit(0)
        return None, 0, 1, world_size, False

    return world, world_rank, world_size, world_size, True


class MPITransport:
    """Coordinator-side channels to shards living on ranks 1..size-1."""

    backend = "mpi"

    def __init__(self, comm: Any) -> None:
        if comm is None or comm.Get_size() < 2:
            raise ValueError("MPI shard backend needs at least 2 ranks (1 coordinator + 1 shard).")
        if comm.Get_rank() != COORDINATOR_RANK:
            raise RuntimeError("MPITransport must be created on the coordinator rank.")
        self.comm = comm
        self.n_shards = comm.Get_size() - 1
        self._collective = False
        self._closed = False

    def send(self, shard_id: int, msg: Tuple[Any, ...]) -> None:
        """Point-to-point delivery (loading phase only)."""
        if self._collective:
            raise RuntimeError("point-to-point messages are only allowed while loading")
        self.comm.send(msg, dest=shard_id + 1)

    def broadcast(self, msg: Tuple[Any, ...]) -> None:
        """Deliver the same message to every shard rank."""
        if not self._collective:
            # Finalize is the last point-to-point message; every shard then joins the collectives.
            for r in range(1, self.n_shards + 1):
                self.comm.send(msg, dest=r)
            if msg[0] == MSG_FINALIZE:
                self._collective = True
            return
        self.comm.bcast(msg, root=COORDINATOR_RANK)

    def gather(self, expected: str) -> List[dict]:
        """Full barrier: wait for every shard rank's reply."""
        replies = self.comm.gather(None, root=COORDINATOR_RANK)
        payloads = []
        for r, reply in enumerate(replies[1:], start=1):
            kind, payload = reply
            if kind != expected:
                raise RuntimeError(f"rank {r}: expected '{expected}' reply, got '{kind}'")
            payloads.append(payload)
        return payloads

    def close(self) -> None:
        """Release shard ranks from their service loops."""
        if self._closed:
            return
        self._closed = True
        if not self._collective:
            for r in range(1, self.n_shards + 1):
                self.comm.send((MSG_STOP,), dest=r)
            return
        self.comm.bcast((MSG_STOP,), root=COORDINATOR_RANK)


def run_shard_service(comm: Any, behavior: BehaviorConfig, behavior_seed: Optional[int] = None) -> AgentShard:
    """Serve one shard on a worker rank until the coordinator stops the run."""
    rank = comm.Get_rank()
    shard_id = rank - 1
    shard = AgentShard(shard_id, behavior, behavior_rng(behavior_seed, shard_id))

    # Loading phase: point-to-point from the coordinator.
    while True:
        msg = comm.recv(source=COORDINATOR_RANK)
        if msg[0] == MSG_STOP:
            return shard
        if msg[0] not in (MSG_LOAD, MSG_FINALIZE):
            raise RuntimeError(f"rank {rank}: unexpected '{msg[0]}' message while loading")
        reply = handle_message(shard, msg)
        if msg[0] == MSG_FINALIZE:
            comm.gather(reply, root=COORDINATOR_RANK)
            break

    # Collective phase: ticks and resets.
    while True:
        msg = comm.bcast(None, root=COORDINATOR_RANK)
        if msg[0] == MSG_STOP:
            break
        comm.gather(handle_message(shard, msg), root=COORDINATOR_RANK)
    logger.debug("Rank %d shard service stopped (%d agents)", rank, shard.size)
    return shard
