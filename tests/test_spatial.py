"""Tests for the bucket grid and flat distance."""
from __future__ import annotations

import numpy as np
import pytest

from lsbam.spatial import SpatialGrid, flat_distance_miles, pack_key, unpack_key


def test_pack_unpack_negative_coordinates():
    for x, y in [(0, 0), (-876, 245), (-1, -1), (123456, -654321)]:
        assert unpack_key(pack_key(x, y)) == (x, y)
    assert pack_key(-1, 0) != pack_key(0, -1)


def test_flat_distance_constants():
    d = flat_distance_miles(np.array([28.0, 27.0]), np.array([-82.0, -81.0]), 27.0, -82.0)
    assert d[0] == pytest.approx(69.0)
    assert d[1] == pytest.approx(60.0)


def test_cell_of_floors_negative_longitudes():
    grid = SpatialGrid(0.1)
    assert grid.cell_of(27.05, -82.05) == (-821, 270)


def test_window_returns_neighbourhood_only():
    grid = SpatialGrid(0.1)
    lat = np.array([27.05, 27.25, 27.35, 27.05])
    lon = np.array([-82.05, -82.05, -82.05, -81.75])
    grid.insert(np.arange(4), lat, lon)
    grid.freeze()
    found = set(grid.window(27.05, -82.05, 2).tolist())
    # Two rows up is inside the 5x5 block; three rows up or across is not.
    assert found == {0, 1}
    assert set(grid.window(27.05, -82.05, 3).tolist()) == {0, 1, 2, 3}
    assert len(grid) == 4


def test_incremental_inserts_are_merged():
    grid = SpatialGrid(0.1)
    grid.insert(np.array([0, 1]), np.array([27.01, 27.02]), np.array([-82.01, -82.02]))
    grid.insert(np.array([2]), np.array([27.03]), np.array([-82.03]))
    assert grid.n_cells == 1
    x, y = grid.cell_of(27.01, -82.01)
    assert sorted(grid.bucket(x, y).tolist()) == [0, 1, 2]
    grid.freeze()
    assert sorted(grid.bucket(x, y).tolist()) == [0, 1, 2]


def test_empty_window():
    grid = SpatialGrid(0.1)
    grid.freeze()
    assert grid.window(27.0, -82.0).size == 0


def test_frozen_grid_rejects_inserts():
    grid = SpatialGrid(0.1)
    grid.freeze()
    with pytest.raises(RuntimeError):
        grid.insert(np.array([0]), np.array([27.0]), np.array([-82.0]))


def test_invalid_cell_size():
    with pytest.raises(ValueError):
        SpatialGrid(0.0)


def test_pack_keys_unique_across_globe():
    grid = SpatialGrid(0.1)
    lats = np.array([-90.0, -90.0, 90.0, 90.0, 0.0, -0.05, 0.15])
    lons = np.array([-180.0, 180.0, -180.0, 180.0, 0.0, -0.05, 0.15])
    keys = grid.keys_for(lats, lons)
    assert len(set(keys.tolist())) == keys.size
    for key, lat, lon in zip(keys.tolist(), lats, lons):
        assert unpack_key(key) == grid.cell_of(lat, lon)


def test_pack_key_rejects_overflowing_coordinates():
    with pytest.raises(ValueError):
        pack_key(0, 2**20)
    with pytest.raises(ValueError):
        pack_key(-(2**20) - 1, 0)


def test_cell_size_too_small_to_pack():
    with pytest.raises(ValueError):
        SpatialGrid(1e-5)
