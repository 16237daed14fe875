# -*- coding: utf-8 -*-
"""Shard workers and the local (inline/thread/process) message transport."""

from __future__ import annotations

# Import dataclass for structured config.
from dataclasses import dataclass

# Import typing primitives.
from typing import Any, List, Optional, Tuple

# Import stdlib helpers.
import logging
import multiprocessing as mp
import os
import queue
import threading

# Import numpy for behavior generators.
import numpy as np

# Import the shard implementation.
from .shard import AgentShard, BehaviorConfig

logger = logging.getLogger("lsbam.workers")

BACKENDS = ("inline", "thread", "process", "mpi")
BEHAVIOR_SEED_MODULUS = 1 << 32

# Message kinds (coordinator -> shard).
MSG_LOAD = "load"
MSG_FINALIZE = "finalize"
MSG_TICK = "tick"
MSG_RESET = "reset"
MSG_STOP = "stop"

# Reply kinds (shard -> coordinator).
REPLY_INIT_DONE = "init_done"
REPLY_TICK_DONE = "tick_done"
REPLY_RESET_DONE = "reset_done"


def available_cpus() -> int:
    """Cores this process may run on (affinity-aware where the platform allows)."""
    if hasattr(os, "process_cpu_count"):
        return os.process_cpu_count() or 1
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def default_shard_count() -> int:
    """max(2, available cores - 1)."""
    return max(2, available_cpus() - 1)


@dataclass(frozen=True)
class ShardPoolConfig:
    """Configuration for the shard pool."""

    backend: str
    workers: int
    chunk_size: int

    @classmethod
    def from_dict(cls, cfg: dict) -> "ShardPoolConfig":
        """Build config from raw dictionary."""
        backend = str(cfg.get("backend", "thread") or "thread").lower().strip()
        if backend not in BACKENDS:
            raise ValueError(f"Unknown shard backend '{backend}'. Use one of: {', '.join(BACKENDS)}.")
        raw_workers = cfg.get("workers", None)
        # Default: leave one core for the coordinator.
        workers = int(raw_workers) if raw_workers not in (None, "") else default_shard_count()
        if workers < 1:
            raise ValueError("compute.shards.workers must be >= 1.")
        chunk_size = int(cfg.get("chunk_size", 50000))
        if chunk_size < 1:
            raise ValueError("compute.shards.chunk_size must be >= 1.")
        return cls(backend=backend, workers=workers, chunk_size=chunk_size)


def behavior_rng(behavior_seed: Optional[int], shard_id: int) -> np.random.Generator:
    """Per-shard generator for exposure/occupancy rolls (unseeded when behavior_seed is None)."""
    if behavior_seed is None:
        return np.random.default_rng()
    # numpy seeds must be non-negative; any integer maps onto its 32-bit residue.
    return np.random.default_rng([int(behavior_seed) % BEHAVIOR_SEED_MODULUS, int(shard_id)])


def handle_message(shard: AgentShard, msg: Tuple[Any, ...]) -> Optional[Tuple[str, dict]]:
    """Apply one coordinator message to a shard; return the reply, if any."""
    kind = msg[0]
    if kind == MSG_LOAD:
        shard.load_batch(msg[1])
        return None
    if kind == MSG_FINALIZE:
        return REPLY_INIT_DONE, shard.finalize_init().to_dict()
    if kind == MSG_TICK:
        return REPLY_TICK_DONE, shard.process_tick(msg[1], msg[2]).to_dict()
    if kind == MSG_RESET:
        return REPLY_RESET_DONE, shard.reset().to_dict()
    raise ValueError(f"Unknown shard message '{kind}'")


def shard_worker_loop(
    shard_id: int,
    behavior: BehaviorConfig,
    behavior_seed: Optional[int],
    inbox: Any,
    outbox: Any,
) -> None:
    """Serve one shard until a stop message arrives (thread or process target)."""
    shard = AgentShard(shard_id, behavior, behavior_rng(behavior_seed, shard_id))
    while True:
        msg = inbox.get()
        if msg[0] == MSG_STOP:
            break
        reply = handle_message(shard, msg)
        if reply is not None:
            outbox.put(reply)


class LocalTransport:
    """Point-to-point channels between the coordinator and local shard workers.

    - inline: shards live in the caller's thread (replies are queued immediately).
    - thread: one daemon thread per shard, queue.Queue channels.
    - process: one process per shard, multiprocessing queues (no shared memory).
    """

    def __init__(self, backend: str, n_shards: int, behavior: BehaviorConfig, behavior_seed: Optional[int] = None) -> None:
        if backend not in ("inline", "thread", "process"):
            raise ValueError(f"LocalTransport does not support backend '{backend}'")
        self.backend = backend
        self.n_shards = int(n_shards)
        self._inline: List[AgentShard] = []
        self._inboxes: List[Any] = []
        self._outboxes: List[Any] = []
        self._workers: List[Any] = []
        self._closed = False

        if backend == "inline":
            self._inline = [AgentShard(i, behavior, behavior_rng(behavior_seed, i)) for i in range(self.n_shards)]
            self._outboxes = [queue.Queue() for _ in range(self.n_shards)]
            return

        ctx = mp.get_context("spawn") if backend == "process" else None
        for i in range(self.n_shards):
            inbox = ctx.Queue() if ctx is not None else queue.Queue()
            outbox = ctx.Queue() if ctx is not None else queue.Queue()
            args = (i, behavior, behavior_seed, inbox, outbox)
            if ctx is not None:
                worker = ctx.Process(target=shard_worker_loop, args=args, name=f"lsbam-shard-{i}", daemon=True)
            else:
                worker = threading.Thread(target=shard_worker_loop, args=args, name=f"lsbam-shard-{i}", daemon=True)
            worker.start()
            self._inboxes.append(inbox)
            self._outboxes.append(outbox)
            self._workers.append(worker)
        logger.info("Started %d %s shard workers", self.n_shards, backend)

    @property
    def inline_shards(self) -> List[AgentShard]:
        """Shards owned by the caller (inline backend only; empty otherwise)."""
        return list(self._inline)

    def send(self, shard_id: int, msg: Tuple[Any, ...]) -> None:
        """Deliver a message to one shard."""
        if self.backend == "inline":
            reply = handle_message(self._inline[shard_id], msg)
            if reply is not None:
                self._outboxes[shard_id].put(reply)
            return
        self._inboxes[shard_id].put(msg)

    def broadcast(self, msg: Tuple[Any, ...]) -> None:
        """Deliver the same message to every shard."""
        for i in range(self.n_shards):
            self.send(i, msg)

    def gather(self, expected: str) -> List[dict]:
        """Block until every shard has replied (no timeout); return payloads in shard order."""
        payloads = []
        for i in range(self.n_shards):
            kind, payload = self._outboxes[i].get()
            if kind != expected:
                raise RuntimeError(f"shard {i}: expected '{expected}' reply, got '{kind}'")
            payloads.append(payload)
        return payloads

    def close(self) -> None:
        """Stop workers and wait for them to exit."""
        if self._closed:
            return
        self._closed = True
        if self.backend == "inline":
            return
        for inbox in self._inboxes:
            inbox.put((MSG_STOP,))
        for worker in self._workers:
            worker.join()
        logger.debug("Stopped %d %s shard workers", self.n_shards, self.backend)
