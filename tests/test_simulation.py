"""End-to-end runs, report persistence and the command line."""
from __future__ import annotations

import json

import numpy as np
import pytest

from lsbam.config import default_config, deep_update
from lsbam.coordinator import ShardCoordinator
from lsbam.io_report import (
    find_latest_report,
    load_report,
    report_filename,
    time_units,
    write_report_json,
    write_timeline_netcdf,
)
from lsbam.population import synthetic_population
from lsbam.simulation import SimulationRunner, build_report, run_simulation
from lsbam.workers import ShardPoolConfig


def _cfg(tmp_path, **output) -> dict:
    cfg = default_config()
    overrides = {
        "model": {"behavior_seed": 3},
        "compute": {"shards": {"backend": "inline", "workers": 3, "chunk_size": 100}},
        "output": dict({"results_dir": str(tmp_path / "results")}, **output),
    }
    return deep_update(cfg, overrides)


@pytest.fixture(scope="module")
def day_report():
    pool = ShardPoolConfig.from_dict({"backend": "inline", "workers": 2, "chunk_size": 250})
    with ShardCoordinator(pool) as coord:
        coord.load_population(synthetic_population(1000, seed=8))
        return SimulationRunner(coord).run(12345)


def test_full_day_report_shape(day_report):
    assert day_report["meta"]["seed"] == 12345
    assert day_report["meta"]["duration"] == "24 Hours"
    assert day_report["meta"]["dateRun"].endswith("Z")
    assert day_report["summary"]["totalAgents"] == 1000
    assert day_report["summary"]["totalCasualties"] >= 0
    assert [f["tick"] for f in day_report["timeline"]] == list(range(1, 289))


def test_full_day_counters(day_report):
    stats = day_report["stats"]
    assert stats["protocolA"]["count"] == 500
    assert stats["protocolB"]["count"] == 500
    assert day_report["summary"]["totalCasualties"] == stats["protocolA"]["struck"] + stats["protocolB"]["struck"]
    previous = {"protocolA": 0, "protocolB": 0}
    for frame in day_report["timeline"]:
        for key in previous:
            minutes = frame["stats"][key]["outdoorsMinutes"]
            assert minutes >= previous[key]
            assert minutes % 5 == 0
            previous[key] = minutes
    assert day_report["timeline"][-1]["stats"] == stats


def test_runner_resets_between_seeds():
    pool = ShardPoolConfig.from_dict({"backend": "inline", "workers": 2, "chunk_size": 50})
    with ShardCoordinator(pool, behavior_seed=21) as coord:
        coord.load_population(synthetic_population(200, seed=5))
        runner = SimulationRunner(coord, n_ticks=60)
        first = runner.run(1)
        runner.run(2)
        again = runner.run(1)
    # Behavior generators continue across runs, so only the storm repeats exactly.
    assert [f["lightning"] for f in first["timeline"]] == [f["lightning"] for f in again["timeline"]]
    assert again["summary"]["totalAgents"] == 200
    assert again["timeline"][0]["stats"]["protocolA"]["outdoorsMinutes"] <= 5 * 100


def test_report_roundtrip_and_latest(tmp_path):
    results = tmp_path / "results"
    report = build_report(
        77,
        {"protocolA": {"outdoorsMinutes": 5, "struck": 0, "count": 1},
         "protocolB": {"outdoorsMinutes": 0, "struck": 0, "count": 1}},
        [],
    )
    path = write_report_json(report, str(results))
    assert path.name.startswith("sim_77_")
    assert load_report(path) == report
    newer = results / report_filename(77, 9999999999999)
    newer.write_text(json.dumps(report), encoding="utf-8")
    (results / report_filename(78, 99999999999999)).write_text("{}", encoding="utf-8")
    assert find_latest_report(str(results), 77) == newer
    assert find_latest_report(str(results), 12) is None
    assert find_latest_report(str(tmp_path / "missing"), 77) is None


def test_report_filename_negative_seed():
    assert report_filename(-5, 123) == "sim_-5_123.json"


def test_run_simulation_writes_reports(tmp_path):
    cfg = _cfg(tmp_path)
    cfg["model"]["ticks"] = 30
    reports = run_simulation(cfg, synthetic_population(60, seed=2), [4, 5])
    assert [r["meta"]["seed"] for r in reports] == [4, 5]
    for seed in (4, 5):
        latest = find_latest_report(str(tmp_path / "results"), seed)
        assert latest is not None
        assert load_report(latest)["summary"]["totalAgents"] == 60


def test_timeline_netcdf(tmp_path, day_report):
    pytest.importorskip("netCDF4")
    xr = pytest.importorskip("xarray")
    out = tmp_path / "timeline.nc"
    write_timeline_netcdf(str(out), day_report, default_config())
    with xr.open_dataset(out) as ds:
        assert ds.sizes["time"] == 288
        assert ds.sizes["protocol"] == 2
        assert int(ds["struck"].isel(time=-1).sum()) == day_report["summary"]["totalCasualties"]
        assert int(ds.attrs["seed"]) == 12345
        # Time decodes against midnight of the run date.
        first = ds["time"].values[0].astype("datetime64[m]")
        last = ds["time"].values[-1].astype("datetime64[m]")
        day = np.datetime64(day_report["meta"]["dateRun"][:10], "m")
        assert first == day + np.timedelta64(5, "m")
        assert last == day + np.timedelta64(1440, "m")


def test_time_units_use_run_date():
    report = {"meta": {"dateRun": "2026-07-04T13:20:00.000001Z"}}
    assert time_units(report) == "minutes since 2026-07-04 00:00:00"
    assert time_units({"meta": {"dateRun": "garbage"}}).startswith("minutes since 20")


def test_cli_storm_command(tmp_path):
    from main import main

    out = tmp_path / "storm.json"
    main(["storm", "--seed", "42", "--ticks", "20", "--out", str(out)])
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["seed"] == 42
    assert payload["totalTicks"] == 20
    assert payload["data"][0]["timestamp"] == 5


def test_cli_run_command(tmp_path):
    from main import main

    results = tmp_path / "results"
    main([
        "run", "--seed", "9", "--synthetic", "40", "--backend", "inline", "--workers", "2",
        "--behavior-seed", "1", "--results-dir", str(results), "--mpi-mode", "disabled",
    ])
    latest = find_latest_report(str(results), 9)
    assert latest is not None
    assert load_report(latest)["summary"]["totalAgents"] == 40
