"""Tests for outdoor-probability classification and population parsing."""
from __future__ import annotations

import math

import pytest

from lsbam.population import (
    iter_population_file,
    job_base_probability,
    outdoor_probability,
    parse_record,
    synthetic_population,
)


@pytest.mark.parametrize(
    "job,expected",
    [
        ("Farm Laborer", 0.75),
        ("Police Officer", 0.75),
        ("Plumber", 0.45),
        ("Truck Driver", 0.45),
        ("Software Developer", 0.05),
        ("Bank Teller", 0.05),
        ("Hair Stylist", 0.15),
        ("", 0.15),
    ],
)
def test_job_tiers(job, expected):
    assert job_base_probability(job) == pytest.approx(expected)


def test_first_matching_tier_wins():
    # "construction" is high-outdoor even though "analyst" is an indoor keyword.
    assert job_base_probability("Construction Analyst") == pytest.approx(0.75)


def test_hobby_boost_and_clamp():
    assert outdoor_probability("Farm Laborer", "[Fishing,Golf]") == pytest.approx(0.95)
    assert outdoor_probability("Plumber", "[Surfing]") == pytest.approx(0.57)
    assert outdoor_probability("Hair Stylist", ["Hiking", "Kayaking", "Golf"]) == pytest.approx(0.40)
    assert outdoor_probability("Software Developer", "[Reading,Chess]") == pytest.approx(0.05)
    assert outdoor_probability(None, None) == pytest.approx(0.15)


def test_probability_always_in_range():
    for rec in synthetic_population(500, seed=3):
        p = outdoor_probability(rec["job"], rec["hobbies"])
        assert 0.05 <= p <= 0.95


def test_parse_record_valid():
    parsed = parse_record({"id": 7, "lat": "27.5", "lon": -82.25, "job": "Plumber", "hobbies": "[Surfing]"})
    assert parsed is not None
    agent_id, lat, lon, prob = parsed
    assert agent_id == 7
    assert lat == 27.5 and lon == -82.25
    assert prob == pytest.approx(0.57)


def test_parse_record_agent_number_fallback():
    parsed = parse_record({"agentNumber": "A-1", "lat": 27.0, "lon": -82.0})
    assert parsed is not None
    assert parsed[0] == "A-1"
    assert parsed[3] == pytest.approx(0.15)


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "not a record",
        [1, 2, 3],
        {"lat": 27.0, "lon": -82.0},
        {"id": 1, "lat": "north", "lon": -82.0},
        {"id": 1, "lat": 27.0},
        {"id": 1, "lat": True, "lon": -82.0},
        {"id": 1, "lat": math.nan, "lon": -82.0},
    ],
)
def test_parse_record_rejects(raw):
    assert parse_record(raw) is None


def test_iter_population_file_array_per_line(tmp_path):
    path = tmp_path / "agents.json"
    path.write_text(
        '[{"id": "1", "lat": 27.0, "lon": -82.0, "job": "Chef"},\n'
        '{"id": "2", "lat": 28.0, "lon": -81.0, "job": "Farm Laborer"},\n'
        "{broken json},\n"
        "\n"
        '{"id": "3", "lat": 26.0, "lon": -80.5}]\n',
        encoding="utf-8",
    )
    records = list(iter_population_file(str(path)))
    assert [r["id"] for r in records] == ["1", "2", "3"]


def test_iter_population_file_json_lines(tmp_path):
    path = tmp_path / "agents.jsonl"
    path.write_text('{"id": 1, "lat": 27.0, "lon": -82.0}\n{"id": 2, "lat": 27.1, "lon": -82.1}\n', encoding="utf-8")
    assert len(list(iter_population_file(str(path)))) == 2


def test_synthetic_population_is_reproducible():
    a = list(synthetic_population(50, seed=9))
    b = list(synthetic_population(50, seed=9))
    assert a == b
    assert [r["id"] for r in a] == [str(i) for i in range(1, 51)]
    assert all(25.0 <= r["lat"] <= 30.0 and -87.0 <= r["lon"] <= -80.0 for r in a)


@pytest.mark.parametrize(
    "lat,lon",
    [(91.0, -82.0), (-90.5, -82.0), (27.0, 180.5), (27.0, -181.0), (1e300, -82.0), (27.0, -1e300)],
)
def test_parse_record_rejects_off_globe_positions(lat, lon):
    assert parse_record({"id": 1, "lat": lat, "lon": lon}) is None


def test_parse_record_accepts_globe_edges():
    assert parse_record({"id": 1, "lat": -90.0, "lon": 180.0}) is not None
