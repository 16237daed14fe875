"""Tests for population distribution and the per-tick barrier."""
from __future__ import annotations

import pytest

from lsbam.coordinator import ShardCoordinator
from lsbam.population import synthetic_population
from lsbam.shard import BehaviorConfig
from lsbam.storm import StormEngine
from lsbam.workers import LocalTransport, ShardPoolConfig


def _records(n: int) -> list:
    return [{"id": str(i), "lat": 27.0 + 0.001 * i, "lon": -82.0, "job": "Farm Laborer"} for i in range(n)]


def _coordinator(backend: str = "inline", workers: int = 2, chunk_size: int = 10, behavior_seed=None):
    pool = ShardPoolConfig.from_dict({"backend": backend, "workers": workers, "chunk_size": chunk_size})
    return ShardCoordinator(pool, BehaviorConfig(), behavior_seed)


def test_round_robin_batches():
    with _coordinator(chunk_size=10) as coord:
        assert coord.load_population(_records(35)) == 35
        sizes = [s.size for s in coord.transport.inline_shards]
        assert sizes == [20, 15]
        assert coord.stats.protocol_a.count == 18
        assert coord.stats.protocol_b.count == 17


def test_protocol_alternates_by_accepted_index():
    records = _records(6)
    records.insert(1, {"id": "bad", "lat": "x", "lon": -82.0})
    records.insert(3, "garbage")
    with _coordinator(workers=1) as coord:
        coord.load_population(records)
        assert coord.skipped == 2
        shard = coord.transport.inline_shards[0]
        assert list(shard.agents.ids) == ["0", "1", "2", "3", "4", "5"]
        assert shard.agents.protocol.tolist() == [0, 1, 0, 1, 0, 1]


@pytest.mark.parametrize("workers", [1, 2, 3, 4, 5])
def test_counts_independent_of_shard_count(workers):
    records = list(synthetic_population(103, seed=4))
    records[10] = {"id": None, "lat": 27.0, "lon": -82.0}
    with _coordinator(workers=workers, chunk_size=7) as coord:
        assert coord.load_population(records) == 102
        assert coord.skipped == 1
        assert coord.stats.protocol_a.count == 51
        assert coord.stats.protocol_b.count == 51
        assert sum(s.size for s in coord.transport.inline_shards) == 102


def test_empty_shards_still_finalize():
    with _coordinator(workers=4, chunk_size=50) as coord:
        assert coord.load_population(_records(3)) == 3
        stats = coord.tick([], [], 100)
        assert stats["protocolA"]["count"] + stats["protocolB"]["count"] == 3


def test_tick_merges_all_shards():
    with _coordinator(workers=3, chunk_size=1) as coord:
        coord.load_population(_records(9))
        bolt = {"id": "0-1", "path": [[27.0, -82.0]]}
        stats = coord.tick([], [bolt], 100)
        assert stats["protocolB"]["struck"] == 0
        assert stats["protocolA"]["struck"] <= 1
        for p in stats.values():
            assert p["outdoorsMinutes"] % 5 == 0
            assert p["outdoorsMinutes"] <= 5 * p["count"]


def test_reset_clears_run_state():
    with _coordinator(workers=2, chunk_size=4) as coord:
        coord.load_population(_records(20))
        for i in range(100, 110):
            coord.tick([], [{"id": f"0-{i}", "path": [[27.0, -82.0]]}], i)
        after = coord.reset()
        assert after["protocolA"] == {"outdoorsMinutes": 0, "struck": 0, "count": 10}
        assert after["protocolB"] == {"outdoorsMinutes": 0, "struck": 0, "count": 10}


def test_seeded_behavior_is_reproducible():
    def run_once():
        with _coordinator(workers=3, chunk_size=25, behavior_seed=11) as coord:
            coord.load_population(synthetic_population(300, seed=1))
            storm = StormEngine(12345)
            stats = None
            for i in range(288):
                frame = storm.tick()
                stats = coord.tick(frame["cells"], frame["lightning"], i)
            return stats

    assert run_once() == run_once()


def test_thread_backend_matches_counts():
    with _coordinator(backend="thread", workers=3, chunk_size=7) as coord:
        assert coord.load_population(synthetic_population(50, seed=2)) == 50
        stats = coord.tick([], [], 0)
        assert stats["protocolA"]["count"] == 25
        assert stats["protocolB"]["count"] == 25
        assert coord.transport.inline_shards == []


def test_thread_backend_reproduces_inline_with_seed():
    frames = [StormEngine(7).tick() for _ in range(150)]

    def run(backend):
        with _coordinator(backend=backend, workers=2, chunk_size=9, behavior_seed=5) as coord:
            coord.load_population(synthetic_population(120, seed=3))
            for i, f in enumerate(frames):
                stats = coord.tick(f["cells"], f["lightning"], i)
            return stats

    assert run("inline") == run("thread")


def test_process_backend_smoke():
    with _coordinator(backend="process", workers=2, chunk_size=5) as coord:
        assert coord.load_population(_records(12)) == 12
        stats = coord.tick([], [], 100)
        assert stats["protocolA"]["count"] == 6
        assert coord.reset()["protocolB"]["count"] == 6


def test_lifecycle_errors():
    coord = _coordinator()
    try:
        with pytest.raises(RuntimeError):
            coord.tick([], [], 0)
        with pytest.raises(RuntimeError):
            coord.reset()
        coord.load_population(_records(2))
        with pytest.raises(RuntimeError):
            coord.load_population(_records(2))
    finally:
        coord.close()


def test_mpi_backend_requires_transport():
    with pytest.raises(ValueError):
        _coordinator(backend="mpi")


def test_pool_config_validation():
    with pytest.raises(ValueError):
        ShardPoolConfig.from_dict({"backend": "gpu"})
    with pytest.raises(ValueError):
        ShardPoolConfig.from_dict({"workers": 0})
    with pytest.raises(ValueError):
        ShardPoolConfig.from_dict({"chunk_size": 0})
    assert ShardPoolConfig.from_dict({}).workers >= 2


def test_local_transport_rejects_mpi():
    with pytest.raises(ValueError):
        LocalTransport("mpi", 2, BehaviorConfig())


def test_off_globe_records_are_skipped():
    records = _records(4) + [{"id": "far", "lat": 1e300, "lon": -82.0}, {"id": "east", "lat": 27.0, "lon": 400.0}]
    with _coordinator(workers=2, chunk_size=3) as coord:
        assert coord.load_population(records) == 4
        assert coord.skipped == 2
        assert sum(s.size for s in coord.transport.inline_shards) == 4


def test_negative_behavior_seed_is_reduced():
    def run(seed):
        with _coordinator(workers=2, chunk_size=5, behavior_seed=seed) as coord:
            coord.load_population(_records(20))
            return [coord.tick([], [], i) for i in range(100, 110)]

    assert run(-1) == run(2**32 - 1)


def test_default_shard_count_uses_affinity(monkeypatch):
    import os

    from lsbam.workers import default_shard_count

    monkeypatch.delattr(os, "process_cpu_count", raising=False)
    monkeypatch.setattr(os, "sched_getaffinity", lambda pid: {0, 1, 2, 3}, raising=False)
    monkeypatch.setattr(os, "cpu_count", lambda: 64)
    assert default_shard_count() == 3
    monkeypatch.setattr(os, "sched_getaffinity", lambda pid: {0}, raising=False)
    assert default_shard_count() == 2
