"""Tests for ZoneProcessor: membership, reduction and join with contracts."""

import threading

import numpy as np
import pandas as pd
import pytest

from zonal.contracts import CRSError, PipelineCancelled
from zonal.pipeline import ZoneProcessor

from tests.helpers.fake_fields import make_grid, make_points
from tests.helpers.fake_zones import make_store, square

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


def test_three_zones_over_grid(internal_config, three_zones, grid_2x2):
    processor = ZoneProcessor(internal_config)
    table = processor.process(three_zones, grid_2x2)

    frame = table.to_frame()
    assert table.zone_ids == [1, 2, 3]
    assert frame["mean"].tolist()[:2] == [1.0, 3.0]
    assert frame.loc[2, "mean"] is pd.NA
    assert frame["count"].tolist() == [1, 2, 0]
    assert frame["name"].tolist() == ["a", "b", "c"]
    assert processor.last_membership is not None
    assert list(processor.last_membership[2]) == [1, 3]


def test_nodata_cells_reported(make_config, three_zones):
    grid = make_grid([[1.0, -9999.0], [3.0, 4.0]], nodata=-9999.0)
    table = ZoneProcessor(make_config(statistics=["sum"])).process(three_zones, grid)

    frame = table.to_frame()
    assert frame.loc[1, "sum"] == 4.0
    assert frame.loc[1, "count"] == 1
    assert frame.loc[1, "nodata_count"] == 1


def test_point_counts_per_zone(make_config):
    zones = make_store([square(0, 0, size=10), square(10, 0, size=10)], ids=["north", "south"])
    cases = make_points([(1, 1), (2, 2), (12, 5), (50, 50)])
    table = ZoneProcessor(make_config(statistics=["count"])).process(zones, cases)

    ids, counts = table.values("count")
    assert ids == ["north", "south"]
    np.testing.assert_array_equal(counts, [2.0, 1.0])


def test_output_zones_carry_original_geometry(internal_config, three_zones, grid_2x2):
    shifted = three_zones.reproject("EPSG:3857")
    table = ZoneProcessor(internal_config).process(shifted, grid_2x2, output_zones=three_zones)
    assert table.crs == three_zones.crs
    assert table.to_frame()["geometry"].iloc[0].equals(three_zones[0].geometry)


def test_crs_mismatch_raises_crs_error(internal_config):
    zones = make_store([square(-50, -10)], crs="EPSG:4326")
    grid = make_grid([[1.0, 2.0], [3.0, 4.0]], crs="EPSG:5880")
    with pytest.raises(CRSError) as excinfo:
        ZoneProcessor(internal_config).process(zones, grid)
    assert excinfo.value.source_crs == "EPSG:4326"
    assert excinfo.value.target_crs == "EPSG:5880"


def test_cancelled_before_start(internal_config, three_zones, grid_2x2):
    event = threading.Event()
    event.set()
    with pytest.raises(PipelineCancelled):
        ZoneProcessor(internal_config).process(three_zones, grid_2x2, cancel_event=event)


def test_parallel_matches_serial(make_config):
    rng = np.random.default_rng(0)
    grid = make_grid(rng.random((20, 20)))
    zones = make_store([square(x, y, size=4) for x in range(0, 20, 4) for y in range(0, 20, 4)])

    serial = ZoneProcessor(make_config(max_workers=1, statistics=["mean", "std"])).process(zones, grid)
    parallel = ZoneProcessor(make_config(max_workers=8, statistics=["mean", "std"])).process(zones, grid)

    pd.testing.assert_frame_equal(
        serial.to_frame().drop(columns="geometry"),
        parallel.to_frame().drop(columns="geometry"),
    )


def test_three_equal_squares_over_grid(internal_config, grid_2x2):
    zones = make_store([square(0, 1), square(1, 1), square(0, 0)], ids=[1, 2, 3])
    assert len({z.geometry.area for z in zones}) == 1

    table = ZoneProcessor(internal_config).process(zones, grid_2x2)

    frame = table.to_frame()
    assert frame["mean"].tolist() == [1.0, 2.0, 3.0]
    assert frame["count"].tolist() == [1, 1, 1]


def test_empty_store_gives_empty_table_with_all_columns(make_config, grid_2x2):
    config = make_config(statistics=["mean", "max", "count"])
    table = ZoneProcessor(config).process(make_store([]), grid_2x2)

    assert len(table) == 0
    assert table.statistics == ["mean", "count", "max"]
    assert {"zone_id", "count", "nodata_count", "mean", "max", "geometry"} <= set(table.to_frame().columns)
