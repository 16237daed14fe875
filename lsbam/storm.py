# -*- coding: utf-8 -*-
"""Procedural storm field: cell lifecycle, spawning and lightning emission.

The engine is fully driven by a :class:`~lsbam.rng.SeededGenerator`, so two
engines built from the same seed produce identical frames tick after tick.
One tick is five simulated minutes.
"""

from __future__ import annotations

# Import dataclasses for cell records and configuration.
from dataclasses import dataclass, field

# Import typing primitives.
from typing import Any, Dict, List, Tuple

# Import logging.
import logging

# Import the deterministic generator.
from .rng import SeededGenerator

# Import shared time constants.
from .time_utils import TICKS_PER_DAY, tick_timestamp_minutes

logger = logging.getLogger("lsbam.storm")

# Intensity envelope.
GROWTH_FRACTION = 0.3
DECAY_FRACTION = 0.8
GROWTH_STEP = 0.05
DECAY_STEP = 0.03
MIN_ACTIVE_INTENSITY = 0.1

# Lightning emission.
LIGHTNING_THRESHOLD = 0.45
FAST_RECHARGE_INTENSITY = 0.8
PATH_STEP_DEG = 0.04


def radius_for_intensity(intensity: float) -> float:
    """Return the cell radius implied by an intensity value."""
    return 5.0 + 15.0 * intensity


@dataclass(frozen=True)
class StormBounds:
    """Simulated region (degrees)."""

    south: float = 24.5
    north: float = 31.0
    west: float = -87.6
    east: float = -80.0

    def contains_extended(self, lat: float, lon: float, margin: float = 1.0) -> bool:
        """Return True if (lat, lon) lies within the bounds grown by `margin` degrees."""
        return (
            self.south - margin <= lat <= self.north + margin
            and self.west - margin <= lon <= self.east + margin
        )


@dataclass(frozen=True)
class StormConfig:
    """Storm generator configuration resolved from JSON."""

    bounds: StormBounds
    calm_threshold: float
    active_window: Tuple[int, int]
    active_spawn_chance: float
    idle_spawn_chance: float

    @classmethod
    def from_dict(cls, cfg: dict) -> "StormConfig":
        """Build config from raw dictionary."""
        b = cfg.get("bounds", {}) or {}
        defaults = StormBounds()
        bounds = StormBounds(
            south=float(b.get("south", defaults.south)),
            north=float(b.get("north", defaults.north)),
            west=float(b.get("west", defaults.west)),
            east=float(b.get("east", defaults.east)),
        )
        if bounds.south >= bounds.north or bounds.west >= bounds.east:
            raise ValueError("storm.bounds must satisfy south < north and west < east.")
        window = cfg.get("active_window", [80, 250]) or [80, 250]
        return cls(
            bounds=bounds,
            calm_threshold=float(cfg.get("calm_threshold", 0.2)),
            active_window=(int(window[0]), int(window[1])),
            active_spawn_chance=float(cfg.get("active_spawn_chance", 0.9)),
            idle_spawn_chance=float(cfg.get("idle_spawn_chance", 0.3)),
        )


@dataclass
class StormCell:
    """A single storm cell.

    The radius is a read-only property derived from intensity.
    """

    id: int
    lat: float
    lon: float
    intensity: float
    max_age: int
    vx: float
    vy: float
    lightning_timer: int
    age: int = 0
    active: bool = True

    @classmethod
    def spawn(cls, cell_id: int, lat: float, lon: float, intensity: float, rng: SeededGenerator) -> "StormCell":
        """Create a cell with RNG-derived lifespan, velocity and recharge countdown."""
        max_age = rng.randint(36, 48)
        vx = (rng.next() - 0.5) * 0.025
        vy = (rng.next() - 0.3) * 0.025
        lightning_timer = rng.randint(0, 5)
        return cls(
            id=cell_id,
            lat=lat,
            lon=lon,
            intensity=intensity,
            max_age=max_age,
            vx=vx,
            vy=vy,
            lightning_timer=lightning_timer,
        )

    @property
    def radius(self) -> float:
        return radius_for_intensity(self.intensity)

    def update(self, bounds: StormBounds) -> None:
        """Advance one tick: move, age, evolve intensity, maybe deactivate."""
        if not self.active:
            return
        self.age += 1
        self.lat += self.vy
        self.lon += self.vx
        self.lightning_timer -= 1

        if self.age < self.max_age * GROWTH_FRACTION:
            self.intensity = min(1.0, self.intensity + GROWTH_STEP)
        elif self.age > self.max_age * DECAY_FRACTION:
            self.intensity = max(0.0, self.intensity - DECAY_STEP)

        if (
            self.age > self.max_age
            or self.intensity < MIN_ACTIVE_INTENSITY
            or not bounds.contains_extended(self.lat, self.lon)
        ):
            self.active = False

    def try_discharge(self, rng: SeededGenerator) -> bool:
        """Return True (and re-arm the recharge countdown) if the cell fires."""
        if self.lightning_timer <= 0 and self.intensity > LIGHTNING_THRESHOLD:
            recharge = 2 if self.intensity > FAST_RECHARGE_INTENSITY else 4
            self.lightning_timer = 1 + int(rng.next() * recharge)
            return True
        return False

    def lightning_path(self, rng: SeededGenerator) -> List[List[float]]:
        """Short random walk starting at the cell center."""
        lat, lon = self.lat, self.lon
        path = [[lat, lon]]
        segments = rng.randint(3, 4)
        for _ in range(segments):
            lat += (rng.next() - 0.5) * PATH_STEP_DEG
            lon += (rng.next() - 0.5) * PATH_STEP_DEG
            path.append([lat, lon])
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.lat,
            "lon": self.lon,
            "radius": self.radius,
            "intensity": self.intensity,
        }


@dataclass
class LightningStrike:
    """One strike; ``path[0]`` is the origin."""

    id: str
    path: List[List[float]] = field(default_factory=list)

    @property
    def origin(self) -> Tuple[float, float]:
        return self.path[0][0], self.path[0][1]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "path": [list(p) for p in self.path]}


class StormEngine:
    """Owns the active cell set and produces one storm frame per tick."""

    def __init__(self, seed: int, cfg: StormConfig | None = None) -> None:
        self._cfg = cfg if cfg is not None else StormConfig.from_dict({})
        self._seed = int(seed)
        self._rng = SeededGenerator(seed)
        self._cells: List[StormCell] = []
        self._next_id = 0
        self._tick = 0
        self._spawn_timer = 0
        # Drawn once per run; biases overall spawn frequency.
        self._weather_state = 0.4 + self._rng.next() * 0.6
        logger.debug("Storm engine seed=%d weather_state=%.3f", self._seed, self._weather_state)

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def bounds(self) -> StormBounds:
        return self._cfg.bounds

    @property
    def weather_state(self) -> float:
        return self._weather_state

    @property
    def current_tick(self) -> int:
        return self._tick

    @property
    def cells(self) -> List[StormCell]:
        return list(self._cells)

    def _new_cell(self, lat: float, lon: float, intensity: float) -> None:
        cell = StormCell.spawn(self._next_id, lat, lon, intensity, self._rng)
        self._next_id += 1
        self._cells.append(cell)

    def _spawn_sea_breeze(self, coast: str) -> None:
        """Spawn a cluster of cells along a shared latitude band near one coast."""
        if self._weather_state < self._cfg.calm_threshold:
            return
        b = self._cfg.bounds
        n_cells = self._rng.randint(3, 5)
        base_lat = self._rng.uniform(b.south, b.north)
        for _ in range(n_cells):
            lat = base_lat + (self._rng.next() - 0.5) * 0.8
            if coast == "east":
                lon = b.east - 0.5 - self._rng.next() * 1.5
            else:
                lon = b.west + 0.5 + self._rng.next() * 1.5
            intensity = 0.3 + self._rng.next() * 0.5
            self._new_cell(lat, lon, intensity)

    def _spawn_isolated(self) -> None:
        b = self._cfg.bounds
        lat = self._rng.uniform(b.south, b.north)
        lon = self._rng.uniform(b.west, b.east)
        intensity = 0.3 + self._rng.next() * 0.5
        self._new_cell(lat, lon, intensity)

    def _spawn_storm(self) -> None:
        lo, hi = self._cfg.active_window
        active_hours = lo < self._tick < hi
        base = self._cfg.active_spawn_chance if active_hours else self._cfg.idle_spawn_chance
        if self._rng.next() > base * self._weather_state:
            return

        spawn_type = self._rng.next()
        if spawn_type < 0.45:
            self._spawn_sea_breeze("east")
        elif spawn_type < 0.90:
            self._spawn_sea_breeze("west")
        else:
            self._spawn_isolated()

    def step(self) -> Tuple[List[StormCell], List[LightningStrike]]:
        """Advance one tick and return (active cells, lightning strikes)."""
        self._tick += 1

        for cell in self._cells:
            cell.update(self._cfg.bounds)
        self._cells = [c for c in self._cells if c.active]

        self._spawn_timer -= 1
        if self._spawn_timer <= 0:
            self._spawn_storm()
            self._spawn_timer = self._rng.randint(5, 10)

        strikes: List[LightningStrike] = []
        for cell in self._cells:
            if cell.try_discharge(self._rng):
                strikes.append(LightningStrike(id=f"{cell.id}-{self._tick}", path=cell.lightning_path(self._rng)))

        return list(self._cells), strikes

    def tick(self) -> Dict[str, Any]:
        """Advance one tick and return a JSON-friendly storm frame."""
        cells, strikes = self.step()
        return {
            "tick": self._tick,
            "timestamp": tick_timestamp_minutes(self._tick),
            "timestampMinutes": tick_timestamp_minutes(self._tick),
            "cells": [c.to_dict() for c in cells],
            "lightning": [s.to_dict() for s in strikes],
        }


def simulate_day(seed: int, cfg: StormConfig | None = None, n_ticks: int = TICKS_PER_DAY) -> List[Dict[str, Any]]:
    """Return the storm-only timeline for a full day."""
    engine = StormEngine(seed, cfg)
    frames = [engine.tick() for _ in range(n_ticks)]
    n_strikes = sum(len(f["lightning"]) for f in frames)
    logger.info("Storm day seed=%d: %d frames, %d strikes", engine.seed, len(frames), n_strikes)
    return frames
