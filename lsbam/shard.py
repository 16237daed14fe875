# -*- coding: utf-8 -*-
"""Agent shard: owns a static partition of the population and its stats.

A shard never sees another shard's agents. Each tick it receives the full
list of lightning strikes (partitioning ignores geography) plus the
time-of-day scalar, runs the strike pass and then the time-accounting pass.
"""

from __future__ import annotations

# Import dataclasses for stats and config.
from dataclasses import dataclass, field

# Import typing primitives.
from typing import Any, Dict, Iterable, Optional, Sequence

# Import logging.
import logging

# Import numpy.
import numpy as np

# Import local modules.
from .agents import PROTOCOL_A, AgentBatch, AgentBuffer
from .spatial import SpatialGrid, flat_distance_miles
from .time_utils import MINUTES_PER_TICK

logger = logging.getLogger("lsbam.shard")


@dataclass(frozen=True)
class BehaviorConfig:
    """Per-agent behavior constants (miles / minutes / grid cells)."""

    grid_cell_deg: float = 0.1
    search_radius_cells: int = 2
    warning_radius_mi: float = 10.0
    shelter_minutes: int = 30
    proximity_shelter_mi: float = 2.0
    lethal_radius_mi: float = 0.1

    @classmethod
    def from_dict(cls, cfg: dict) -> "BehaviorConfig":
        """Build config from raw dictionary."""
        d = cls()
        out = cls(
            grid_cell_deg=float(cfg.get("grid_cell_deg", d.grid_cell_deg)),
            search_radius_cells=int(cfg.get("search_radius_cells", d.search_radius_cells)),
            warning_radius_mi=float(cfg.get("warning_radius_mi", d.warning_radius_mi)),
            shelter_minutes=int(cfg.get("shelter_minutes", d.shelter_minutes)),
            proximity_shelter_mi=float(cfg.get("proximity_shelter_mi", d.proximity_shelter_mi)),
            lethal_radius_mi=float(cfg.get("lethal_radius_mi", d.lethal_radius_mi)),
        )
        if out.grid_cell_deg <= 0.0:
            raise ValueError("agents.grid_cell_deg must be positive.")
        if out.search_radius_cells < 0:
            raise ValueError("agents.search_radius_cells must be >= 0.")
        return out


@dataclass
class ProtocolStats:
    """Counters for one protocol."""

    count: int = 0
    outdoors_minutes: int = 0
    struck: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"outdoorsMinutes": int(self.outdoors_minutes), "struck": int(self.struck), "count": int(self.count)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProtocolStats":
        return cls(
            count=int(d.get("count", 0)),
            outdoors_minutes=int(d.get("outdoorsMinutes", 0)),
            struck=int(d.get("struck", 0)),
        )


@dataclass
class ShardStats:
    """Per-protocol stats of one shard (or the merged total)."""

    protocol_a: ProtocolStats = field(default_factory=ProtocolStats)
    protocol_b: ProtocolStats = field(default_factory=ProtocolStats)

    @property
    def total_agents(self) -> int:
        return self.protocol_a.count + self.protocol_b.count

    @property
    def total_struck(self) -> int:
        return self.protocol_a.struck + self.protocol_b.struck

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {"protocolA": self.protocol_a.to_dict(), "protocolB": self.protocol_b.to_dict()}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShardStats":
        return cls(
            protocol_a=ProtocolStats.from_dict(d.get("protocolA", {})),
            protocol_b=ProtocolStats.from_dict(d.get("protocolB", {})),
        )

    def copy(self) -> "ShardStats":
        return ShardStats.from_dict(self.to_dict())


def merge_stats(parts: Iterable[ShardStats]) -> ShardStats:
    """Sum per-protocol counters across shards."""
    out = ShardStats()
    for s in parts:
        for mine, theirs in ((out.protocol_a, s.protocol_a), (out.protocol_b, s.protocol_b)):
            mine.count += theirs.count
            mine.outdoors_minutes += theirs.outdoors_minutes
            mine.struck += theirs.struck
    return out


def _lightning_origin(bolt: Any) -> tuple[float, float]:
    """Accept LightningStrike objects or their dict form."""
    path = bolt["path"] if isinstance(bolt, dict) else bolt.path
    return float(path[0][0]), float(path[0][1])


class AgentShard:
    """One partition of the population with its own grid and stats."""

    def __init__(
        self,
        shard_id: int = 0,
        cfg: BehaviorConfig | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.shard_id = int(shard_id)
        self.cfg = cfg if cfg is not None else BehaviorConfig()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.agents = AgentBuffer.empty()
        self.grid = SpatialGrid(self.cfg.grid_cell_deg)
        self.stats = ShardStats()
        self._finalized = False

    @property
    def size(self) -> int:
        return self.agents.size

    @property
    def finalized(self) -> bool:
        return self._finalized

    def load_batch(self, batch: AgentBatch) -> int:
        """Append agents to the owned population and grid; return the new size."""
        if self._finalized:
            raise RuntimeError(f"shard {self.shard_id}: load_batch after finalize_init")
        start, end = self.agents.append_batch(batch)
        if end > start:
            slots = np.arange(start, end, dtype=np.int64)
            self.grid.insert(slots, self.agents.lat[start:end], self.agents.lon[start:end])
        return self.agents.size

    def finalize_init(self) -> ShardStats:
        """Seal the population and tally per-protocol counts (exactly once)."""
        if self._finalized:
            raise RuntimeError(f"shard {self.shard_id}: finalize_init called twice")
        self.agents.trim()
        self.grid.freeze()
        self._finalized = True
        self._retally()
        logger.debug(
            "Shard %d finalized: %d agents in %d grid cells (A=%d, B=%d)",
            self.shard_id,
            self.agents.size,
            self.grid.n_cells,
            self.stats.protocol_a.count,
            self.stats.protocol_b.count,
        )
        return self.stats.copy()

    def _retally(self) -> None:
        n = self.agents.size
        proto = self.agents.protocol[:n]
        n_a = int(np.count_nonzero(proto == PROTOCOL_A))
        self.stats = ShardStats(ProtocolStats(count=n_a), ProtocolStats(count=n - n_a))

    def _require_finalized(self) -> None:
        if not self._finalized:
            raise RuntimeError(f"shard {self.shard_id}: finalize_init has not been called")

    def apply_strike(self, lat0: float, lon0: float, time_scalar: float) -> int:
        """Apply one strike at (lat0, lon0); return the number of agents struck."""
        ag = self.agents
        cfg = self.cfg
        idx = self.grid.window(lat0, lon0, cfg.search_radius_cells)
        if idx.size == 0:
            return 0
        idx = idx[~ag.struck[idx]]
        if idx.size == 0:
            return 0

        dist = flat_distance_miles(ag.lat[idx], ag.lon[idx], lat0, lon0)
        is_a = ag.protocol[idx] == PROTOCOL_A
        prior_timer = ag.shelter_timer[idx].copy()

        # Protocol A: warning radius (re)arms the shelter countdown.
        warned = is_a & (dist <= cfg.warning_radius_mi)
        if np.any(warned):
            ag.shelter_timer[idx[warned]] = cfg.shelter_minutes

        rolls = self.rng.random(idx.size)
        outside = rolls < ag.prob[idx] * time_scalar
        # A: exposed only without forewarning. B: exposed only beyond proximity range.
        exposed = np.where(is_a, prior_timer <= 0, dist > cfg.proximity_shelter_mi) & outside

        hit = exposed & (dist < cfg.lethal_radius_mi)
        if not np.any(hit):
            return 0
        hit_idx = idx[hit]
        ag.struck[hit_idx] = True
        n_hit_a = int(np.count_nonzero(is_a[hit]))
        self.stats.protocol_a.struck += n_hit_a
        self.stats.protocol_b.struck += int(hit_idx.size) - n_hit_a
        return int(hit_idx.size)

    def accumulate_time(self, time_scalar: float) -> None:
        """Per-tick shelter countdown and outdoor-minutes occupancy estimate."""
        ag = self.agents
        n = ag.size
        if n == 0:
            return
        alive = ~ag.struck[:n]
        timer = ag.shelter_timer[:n]
        np.maximum(timer - MINUTES_PER_TICK, 0, out=timer, where=alive)

        is_a = ag.protocol[:n] == PROTOCOL_A
        sheltering = is_a & (timer > 0)
        rolls = self.rng.random(n)
        outside = alive & ~sheltering & (rolls < ag.prob[:n] * time_scalar)
        n_out_a = int(np.count_nonzero(outside & is_a))
        n_out_b = int(np.count_nonzero(outside)) - n_out_a
        self.stats.protocol_a.outdoors_minutes += n_out_a * MINUTES_PER_TICK
        self.stats.protocol_b.outdoors_minutes += n_out_b * MINUTES_PER_TICK

    def process_tick(self, lightning: Sequence[Any], time_scalar: float) -> ShardStats:
        """Run the strike pass then the time-accounting pass; return a stats snapshot."""
        self._require_finalized()
        for bolt in lightning:
            lat0, lon0 = _lightning_origin(bolt)
            self.apply_strike(lat0, lon0, time_scalar)
        self.accumulate_time(time_scalar)
        return self.stats.copy()

    def reset(self) -> ShardStats:
        """Clear behavior state and counters; keep positions, probabilities and protocols."""
        self._require_finalized()
        self.agents.struck[:] = False
        self.agents.shelter_timer[:] = 0
        self._retally()
        return self.stats.copy()
