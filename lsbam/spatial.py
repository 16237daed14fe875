# -*- coding: utf-8 -*-
"""Quantized lat/lon bucket index over a shard's agents."""

from __future__ import annotations

# Import typing primitives.
from typing import Dict, List

# Import math for scalar floor.
import math

# Import numpy.
import numpy as np

# Packed-key layout: (x + bias) * stride + (y + bias), both axes non-negative after biasing.
_KEY_BIAS = 1 << 20
_KEY_STRIDE = 1 << 21

# Flat-plane distance constants tuned for the simulated region.
MILES_PER_DEG_LAT = 69.0
MILES_PER_DEG_LON = 60.0


def pack_key(x: int, y: int) -> int:
    """Pack integer grid coordinates into one integer key."""
    if not (-_KEY_BIAS <= int(x) < _KEY_BIAS and -_KEY_BIAS <= int(y) < _KEY_BIAS):
        raise ValueError(f"grid coordinates ({x}, {y}) outside the packable range")
    return (int(x) + _KEY_BIAS) * _KEY_STRIDE + (int(y) + _KEY_BIAS)


def unpack_key(key: int) -> tuple[int, int]:
    """Inverse of :func:`pack_key`."""
    xb, yb = divmod(int(key), _KEY_STRIDE)
    return xb - _KEY_BIAS, yb - _KEY_BIAS


def flat_distance_miles(lat: np.ndarray, lon: np.ndarray, lat0: float, lon0: float) -> np.ndarray:
    """Flat-plane distance (miles) from (lat0, lon0) to each point."""
    dlat = (np.asarray(lat, dtype=np.float64) - lat0) * MILES_PER_DEG_LAT
    dlon = (np.asarray(lon, dtype=np.float64) - lon0) * MILES_PER_DEG_LON
    return np.sqrt(dlat * dlat + dlon * dlon)


class SpatialGrid:
    """Bucket index mapping packed grid keys to arrays of agent slots.

    Agents are stationary, so each slot is inserted exactly once. Buckets are
    collected as chunks while loading and compacted by :meth:`freeze`.
    """

    def __init__(self, cell_size_deg: float = 0.1) -> None:
        if cell_size_deg <= 0.0:
            raise ValueError("grid cell size must be positive")
        if 180.0 / cell_size_deg >= _KEY_BIAS:
            raise ValueError("grid cell size too small to pack global coordinates")
        self._cell = float(cell_size_deg)
        self._pending: Dict[int, List[np.ndarray]] = {}
        self._buckets: Dict[int, np.ndarray] = {}
        self._frozen = False
        self._count = 0

    @property
    def cell_size(self) -> float:
        return self._cell

    @property
    def n_cells(self) -> int:
        return len(self._buckets) if self._frozen else len(self._pending)

    def __len__(self) -> int:
        return self._count

    def cell_of(self, lat: float, lon: float) -> tuple[int, int]:
        """Return integer (x, y) grid coordinates of a point."""
        return math.floor(lon / self._cell), math.floor(lat / self._cell)

    def keys_for(self, lat: np.ndarray, lon: np.ndarray) -> np.ndarray:
        """Vectorized packed keys for many points."""
        x = np.floor(np.asarray(lon, dtype=np.float64) / self._cell).astype(np.int64)
        y = np.floor(np.asarray(lat, dtype=np.float64) / self._cell).astype(np.int64)
        return (x + _KEY_BIAS) * _KEY_STRIDE + (y + _KEY_BIAS)

    def insert(self, slots: np.ndarray, lat: np.ndarray, lon: np.ndarray) -> None:
        """Insert agent slots at their positions."""
        if self._frozen:
            raise RuntimeError("SpatialGrid is frozen; no further inserts allowed")
        slots = np.asarray(slots, dtype=np.int64)
        if slots.size == 0:
            return
        keys = self.keys_for(lat, lon)
        uniq, inverse = np.unique(keys, return_inverse=True)
        order = np.argsort(inverse, kind="stable")
        bounds = np.searchsorted(inverse[order], np.arange(uniq.size + 1))
        for i, key in enumerate(uniq.tolist()):
            chunk = slots[order[bounds[i] : bounds[i + 1]]]
            self._pending.setdefault(key, []).append(chunk)
        self._count += int(slots.size)

    def freeze(self) -> None:
        """Compact pending chunks into one contiguous array per bucket."""
        if self._frozen:
            return
        self._buckets = {
            key: (chunks[0] if len(chunks) == 1 else np.concatenate(chunks))
            for key, chunks in self._pending.items()
        }
        self._pending = {}
        self._frozen = True

    def bucket(self, x: int, y: int) -> np.ndarray:
        """Return the slots stored in grid cell (x, y)."""
        key = pack_key(x, y)
        if self._frozen:
            return self._buckets.get(key, np.zeros(0, dtype=np.int64))
        chunks = self._pending.get(key)
        if not chunks:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate(chunks)

    def window(self, lat: float, lon: float, radius_cells: int = 2) -> np.ndarray:
        """Return the slots in the (2r+1)x(2r+1) block of cells around (lat, lon)."""
        cx, cy = self.cell_of(lat, lon)
        found: List[np.ndarray] = []
        for x in range(cx - radius_cells, cx + radius_cells + 1):
            for y in range(cy - radius_cells, cy + radius_cells + 1):
                b = self.bucket(x, y)
                if b.size:
                    found.append(b)
        if not found:
            return np.zeros(0, dtype=np.int64)
        return found[0] if len(found) == 1 else np.concatenate(found)
