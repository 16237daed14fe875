# -*- coding: utf-8 -*-
"""Agent containers (structure-of-arrays) and helpers."""

# Import dataclass for simple structured objects.
from dataclasses import dataclass

# Import numpy for arrays.
import numpy as np

# Protocol codes stored in the `protocol` arrays.
PROTOCOL_A = 0
PROTOCOL_B = 1
PROTOCOL_NAMES = ("A", "B")


@dataclass
class AgentBatch:
    """Prepared agents ready to be shipped to a shard.

    Attributes
    ----------
    ids : np.ndarray (object)
        Agent identifiers as found in the input records.
    lat, lon : np.ndarray (float64)
        Fixed position in degrees.
    prob : np.ndarray (float64)
        Base outdoor probability in [0.05, 0.95].
    protocol : np.ndarray (uint8)
        PROTOCOL_A or PROTOCOL_B.
    """
    ids: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    prob: np.ndarray
    protocol: np.ndarray

    @property
    def size(self) -> int:
        return int(self.lat.size)


def batch_from_columns(ids: list, lat: list, lon: list, prob: list, protocol: list) -> AgentBatch:
    """Build a batch from parallel Python lists."""
    id_arr = np.empty(len(ids), dtype=object)
    id_arr[:] = ids
    return AgentBatch(
        ids=id_arr,
        lat=np.asarray(lat, dtype=np.float64),
        lon=np.asarray(lon, dtype=np.float64),
        prob=np.asarray(prob, dtype=np.float64),
        protocol=np.asarray(protocol, dtype=np.uint8),
    )


@dataclass
class AgentBuffer:
    """Growable shard-local agent storage.

    Static fields (ids, lat, lon, prob, protocol) never change after loading;
    `shelter_timer` (minutes) and `struck` are the per-run behavior state.
    """

    ids: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    prob: np.ndarray
    protocol: np.ndarray
    shelter_timer: np.ndarray
    struck: np.ndarray
    size: int

    @classmethod
    def empty(cls, capacity: int = 0) -> "AgentBuffer":
        cap = max(0, int(capacity))
        return cls(
            ids=np.empty(cap, dtype=object),
            lat=np.zeros(cap, dtype=np.float64),
            lon=np.zeros(cap, dtype=np.float64),
            prob=np.zeros(cap, dtype=np.float64),
            protocol=np.zeros(cap, dtype=np.uint8),
            shelter_timer=np.zeros(cap, dtype=np.int32),
            struck=np.zeros(cap, dtype=bool),
            size=0,
        )

    @property
    def capacity(self) -> int:
        """Return current allocated capacity."""
        return int(self.lat.size)

    def _ensure_capacity(self, extra: int) -> None:
        """Ensure arrays can fit `extra` additional agents."""
        needed = self.size + int(extra)
        if needed <= self.capacity:
            return
        new_cap = max(needed, max(1, self.capacity) * 2)
        self.ids = _grow_array(self.ids, new_cap, dtype=self.ids.dtype)
        self.lat = _grow_array(self.lat, new_cap, dtype=self.lat.dtype)
        self.lon = _grow_array(self.lon, new_cap, dtype=self.lon.dtype)
        self.prob = _grow_array(self.prob, new_cap, dtype=self.prob.dtype)
        self.protocol = _grow_array(self.protocol, new_cap, dtype=self.protocol.dtype)
        self.shelter_timer = _grow_array(self.shelter_timer, new_cap, dtype=self.shelter_timer.dtype)
        self.struck = _grow_array(self.struck, new_cap, dtype=self.struck.dtype)

    def append_batch(self, batch: AgentBatch) -> tuple[int, int]:
        """Append a batch; return the (start, end) slot range it occupies."""
        n_new = batch.size
        start = self.size
        if n_new == 0:
            return start, start
        self._ensure_capacity(n_new)
        end = start + n_new
        self.ids[start:end] = batch.ids
        self.lat[start:end] = batch.lat
        self.lon[start:end] = batch.lon
        self.prob[start:end] = np.clip(batch.prob, 0.05, 0.95)
        self.protocol[start:end] = batch.protocol
        self.shelter_timer[start:end] = 0
        self.struck[start:end] = False
        self.size = end
        return start, end

    def trim(self) -> None:
        """Drop unused capacity (called once loading is complete)."""
        n = self.size
        self.ids = self.ids[:n].copy()
        self.lat = self.lat[:n].copy()
        self.lon = self.lon[:n].copy()
        self.prob = self.prob[:n].copy()
        self.protocol = self.protocol[:n].copy()
        self.shelter_timer = self.shelter_timer[:n].copy()
        self.struck = self.struck[:n].copy()


def _grow_array(arr: np.ndarray, new_size: int, dtype: np.dtype) -> np.ndarray:
    """Grow a 1D numpy array to a new size."""
    if dtype == object:
        expanded = np.empty(int(new_size), dtype=object)
    else:
        expanded = np.zeros(int(new_size), dtype=dtype)
    expanded[: arr.size] = arr
    return expanded
