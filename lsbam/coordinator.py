# -*- coding: utf-8 -*-
"""Shard coordinator: population distribution, per-tick fan-out/fan-in, reset."""

from __future__ import annotations

# Import typing primitives.
from typing import Any, Dict, Iterable, List, Optional, Sequence

# Import logging.
import logging

# Import local modules.
from .agents import PROTOCOL_A, PROTOCOL_B, batch_from_columns
from .population import parse_record
from .shard import BehaviorConfig, ShardStats, merge_stats
from .time_utils import time_of_day_scalar
from .workers import (
    MSG_FINALIZE,
    MSG_LOAD,
    MSG_RESET,
    MSG_TICK,
    REPLY_INIT_DONE,
    REPLY_RESET_DONE,
    REPLY_TICK_DONE,
    LocalTransport,
    ShardPoolConfig,
)

logger = logging.getLogger("lsbam.coordinator")

# Progress log cadence while streaming the population.
LOAD_LOG_EVERY = 100000


class ShardCoordinator:
    """Owns every shard and drives them as one synchronous barrier per call.

    The transport decides where shards live (inline, threads, processes or MPI
    ranks); the coordinator only ever talks to shards through it, and every
    tick waits for all shards before returning.
    """

    def __init__(
        self,
        pool: ShardPoolConfig | None = None,
        behavior: BehaviorConfig | None = None,
        behavior_seed: Optional[int] = None,
        transport: Any = None,
    ) -> None:
        self.pool = pool if pool is not None else ShardPoolConfig.from_dict({})
        self.behavior = behavior if behavior is not None else BehaviorConfig()
        self.behavior_seed = behavior_seed
        if transport is None:
            if self.pool.backend == "mpi":
                raise ValueError("The mpi backend needs an MPITransport (see lsbam.mpi_utils).")
            transport = LocalTransport(self.pool.backend, self.pool.workers, self.behavior, behavior_seed)
        self.transport = transport
        self.n_shards = int(transport.n_shards)
        self.stats = ShardStats()
        self.loaded = False
        self.total_loaded = 0
        self.skipped = 0

    def __enter__(self) -> "ShardCoordinator":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def load_population(self, records: Iterable[Dict[str, Any]]) -> int:
        """Stream records into shards in round-robin batches; return the number loaded.

        Protocol alternates by accepted-record index (even -> A, odd -> B).
        Malformed records are skipped and counted.
        """
        if self.loaded:
            raise RuntimeError("population already loaded; use reset() to rerun")
        chunk = self.pool.chunk_size
        target = 0
        ids: List[Any] = []
        lat: List[float] = []
        lon: List[float] = []
        prob: List[float] = []
        proto: List[int] = []

        def _flush() -> None:
            nonlocal target, ids, lat, lon, prob, proto
            if not ids:
                return
            self.transport.send(target, (MSG_LOAD, batch_from_columns(ids, lat, lon, prob, proto)))
            target = (target + 1) % self.n_shards
            ids, lat, lon, prob, proto = [], [], [], [], []

        for raw in records:
            parsed = parse_record(raw)
            if parsed is None:
                self.skipped += 1
                logger.debug("Skipping malformed population record: %.120r", raw)
                continue
            agent_id, a_lat, a_lon, a_prob = parsed
            ids.append(agent_id)
            lat.append(a_lat)
            lon.append(a_lon)
            prob.append(a_prob)
            proto.append(PROTOCOL_A if self.total_loaded % 2 == 0 else PROTOCOL_B)
            self.total_loaded += 1
            if len(ids) >= chunk:
                _flush()
            if self.total_loaded % LOAD_LOG_EVERY == 0:
                logger.info("Loaded %d agents...", self.total_loaded)
        _flush()

        if self.skipped:
            logger.warning("Skipped %d malformed population records", self.skipped)

        # Barrier: every shard must acknowledge before the first tick.
        self.transport.broadcast((MSG_FINALIZE,))
        parts = [ShardStats.from_dict(p) for p in self.transport.gather(REPLY_INIT_DONE)]
        self.stats = merge_stats(parts)
        self.loaded = True
        logger.info(
            "System ready: %d agents distributed across %d shards (A=%d, B=%d)",
            self.total_loaded,
            self.n_shards,
            self.stats.protocol_a.count,
            self.stats.protocol_b.count,
        )
        return self.total_loaded

    def tick(self, cells: Sequence[Any], lightning: Sequence[Any], tick_index: int) -> Dict[str, Dict[str, int]]:
        """Broadcast one tick's lightning to all shards, wait for all, merge stats.

        `cells` is accepted for interface symmetry with the storm frame; shards
        only react to lightning.
        """
        if not self.loaded:
            raise RuntimeError("tick() before load_population()")
        scalar = time_of_day_scalar(int(tick_index))
        bolts = [b if isinstance(b, dict) else b.to_dict() for b in lightning]
        self.transport.broadcast((MSG_TICK, bolts, scalar))
        parts = [ShardStats.from_dict(p) for p in self.transport.gather(REPLY_TICK_DONE)]
        self.stats = merge_stats(parts)
        return self.stats.to_dict()

    def reset(self) -> Dict[str, Dict[str, int]]:
        """Clear behavior state on every shard (barrier)."""
        if not self.loaded:
            raise RuntimeError("reset() before load_population()")
        logger.info("Resetting simulation state across %d shards...", self.n_shards)
        self.transport.broadcast((MSG_RESET,))
        parts = [ShardStats.from_dict(p) for p in self.transport.gather(REPLY_RESET_DONE)]
        self.stats = merge_stats(parts)
        return self.stats.to_dict()

    def close(self) -> None:
        """Shut the shard workers down."""
        self.transport.close()
