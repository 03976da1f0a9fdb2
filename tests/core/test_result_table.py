"""Tests for ResultTable."""

import numpy as np
import pandas as pd
import pyarrow.parquet as pq
import pytest
import shapely

from zonal.contracts.failure import ContractViolation
from zonal.core.aggregator import Aggregator
from zonal.core.geometry_store import GeometryStore
from zonal.core.predicate import SpatialPredicateEngine
from zonal.core.result_table import ResultTable
from zonal.core.types import ZoneStatistic

from tests.helpers.fake_zones import make_store, square

pytestmark = pytest.mark.unit


@pytest.fixture
def table(internal_config, grid_2x2, three_zones):
    m = SpatialPredicateEngine(internal_config).membership(three_zones, grid_2x2)
    stats = Aggregator(internal_config).reduce_many(m, grid_2x2, ["mean", "max"])
    return ResultTable.join(stats, three_zones)


def test_one_row_per_zone_in_store_order(table, three_zones):
    assert len(table) == len(three_zones)
    assert table.zone_ids == [1, 2, 3]


def test_column_order(table):
    assert list(table.to_frame().columns) == ["zone_id", "count", "nodata_count", "mean", "max", "name", "geometry"]


def test_absent_values_are_na_not_nan(table):
    frame = table.to_frame()
    assert frame["mean"].dtype == "Float64"
    assert frame.loc[2, "mean"] is pd.NA
    assert frame.loc[2, "count"] == 0
    assert frame.loc[0, "mean"] == 1.0


def test_values_for_statistical_tests(table):
    ids, values = table.values("mean")
    assert ids == [1, 2]
    np.testing.assert_array_equal(values, [1.0, 3.0])

    ids, values = table.values("mean", drop_absent=False)
    assert ids == [1, 2, 3]
    assert np.isnan(values[2])

    with pytest.raises(KeyError):
        table.values("std")


def test_zone_without_any_statistic_gets_na_count(three_zones):
    stats = [ZoneStatistic(zone_id=1, statistic="sum", value=4.0, count=2)]
    frame = ResultTable.join(stats, three_zones).to_frame()
    assert len(frame) == 3
    assert frame.loc[1, "count"] is pd.NA
    assert frame.loc[1, "sum"] is pd.NA


def test_attribute_named_like_a_column_is_prefixed():
    store = make_store([square(0, 0)], attributes=[{"count": 99, "mean": "x"}])
    stats = [ZoneStatistic(zone_id=1, statistic="mean", value=1.0, count=1)]
    frame = ResultTable.join(stats, store).to_frame()
    assert frame.loc[0, "attr_count"] == 99
    assert frame.loc[0, "attr_mean"] == "x"
    assert frame.loc[0, "count"] == 1


def test_duplicate_statistic_violates_contract(three_zones):
    stats = [ZoneStatistic(zone_id=1, statistic="mean", value=1.0, count=1)] * 2
    with pytest.raises(ContractViolation, match="Duplicate"):
        ResultTable.join(stats, three_zones)


def test_unknown_zone_violates_contract(three_zones):
    stats = [ZoneStatistic(zone_id=99, statistic="mean", value=1.0, count=1)]
    with pytest.raises(ContractViolation, match="unknown zone"):
        ResultTable.join(stats, three_zones)


def test_inconsistent_counts_violate_contract(three_zones):
    stats = [
        ZoneStatistic(zone_id=1, statistic="mean", value=1.0, count=1),
        ZoneStatistic(zone_id=1, statistic="max", value=1.0, count=2),
    ]
    with pytest.raises(ContractViolation, match="Inconsistent counts"):
        ResultTable.join(stats, three_zones)


@pytest.mark.integration
def test_parquet_output(table, temp_dir):
    path = table.to_parquet(temp_dir / "out.parquet")
    arrow = pq.read_table(path)
    assert arrow.schema.metadata[b"zonal:crs"] == b"EPSG:3857"
    frame = arrow.to_pandas()
    assert len(frame) == 3
    assert pd.isna(frame.loc[2, "mean"])
    geom = shapely.from_wkb(frame.loc[0, "geometry"])
    assert geom.equals(table.to_frame().loc[0, "geometry"])


@pytest.mark.integration
def test_csv_output(table, temp_dir):
    path = table.write(temp_dir / "out.csv", fmt="csv")
    frame = pd.read_csv(path)
    assert frame["zone_id"].tolist() == [1, 2, 3]
    assert pd.isna(frame.loc[2, "mean"])
    assert frame.loc[0, "geometry"].startswith("POLYGON")


def test_empty_store_gives_empty_table():
    table = ResultTable.join([], GeometryStore([], "EPSG:4326"))
    assert len(table) == 0
    assert table.statistics == []


def test_count_statistic_uses_count_column(three_zones):
    stats = [
        ZoneStatistic(zone_id=1, statistic="count", value=1.0, count=1),
        ZoneStatistic(zone_id=2, statistic="count", value=2.0, count=2),
        ZoneStatistic(zone_id=3, statistic="count", value=None, count=0),
    ]
    table = ResultTable.join(stats, three_zones)

    assert list(table.to_frame().columns).count("count") == 1
    ids, counts = table.values("count")
    assert ids == [1, 2, 3]
    np.testing.assert_array_equal(counts, [1.0, 2.0, 0.0])


def test_requested_statistics_exist_without_records():
    table = ResultTable.join([], GeometryStore([], "EPSG:4326"), statistics=["std", "mean"])
    assert table.statistics == ["mean", "std"]
    assert list(table.to_frame().columns) == ["zone_id", "count", "nodata_count", "mean", "std", "geometry"]


def test_prefixed_attribute_does_not_overwrite_existing_one():
    store = make_store([square(0, 0)], attributes=[{"attr_mean": "keep", "mean": "m"}])
    stats = [ZoneStatistic(zone_id=1, statistic="mean", value=1.0, count=1)]
    frame = ResultTable.join(stats, store).to_frame()
    assert frame.loc[0, "attr_mean"] == "keep"
    assert frame.loc[0, "attr_attr_mean"] == "m"
    assert frame.loc[0, "mean"] == 1.0


@pytest.mark.integration
def test_parquet_mixed_zone_id_types_written_as_strings(temp_dir):
    store = make_store([square(0, 0), square(2, 0)], ids=[1, "b"])
    stats = [
        ZoneStatistic(zone_id=1, statistic="mean", value=1.0, count=1),
        ZoneStatistic(zone_id="b", statistic="mean", value=2.0, count=1),
    ]
    path = ResultTable.join(stats, store).to_parquet(temp_dir / "mixed.parquet")

    arrow = pq.read_table(path)
    assert arrow.schema.metadata[b"zonal:string_columns"] == b"zone_id"
    assert arrow.column("zone_id").to_pylist() == ["1", "b"]
    assert arrow.column("mean").to_pylist() == [1.0, 2.0]


@pytest.mark.integration
def test_parquet_mixed_attribute_types_written_as_strings(temp_dir):
    store = make_store([square(0, 0), square(2, 0)], attributes=[{"code": 7}, {"code": "X7"}])
    path = ResultTable.join([], store).to_parquet(temp_dir / "codes.parquet")

    arrow = pq.read_table(path)
    assert arrow.schema.metadata[b"zonal:string_columns"] == b"code"
    assert arrow.column("code").to_pylist() == ["7", "X7"]
    assert arrow.column("zone_id").to_pylist() == [1, 2]
