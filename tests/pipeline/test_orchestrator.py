"""Tests for ZonalPipeline: loading, CRS alignment, export and cancellation."""

import json
import logging

import pandas as pd
import pyarrow.parquet as pq
import pytest

from zonal.contracts import FormatError, PipelineCancelled
from zonal.pipeline import ZonalPipeline
from zonal.schemas import ParamConfig, UserConfig, resolve_config

from tests.helpers.fake_fields import make_grid, write_grid_netcdf, write_points_csv
from tests.helpers.fake_zones import feature_collection, make_store, square

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


@pytest.fixture
def restore_root_logger():
    """Put the root logger back after a test that calls _setup_logging()."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def mercator_grid():
    """2x2 grid of 100 km cells in EPSG:3857, lower-left corner at (0, 0)."""
    return make_grid([[1.0, 2.0], [3.0, 4.0]], cell_size=(100000.0, 100000.0))


def test_run_with_objects(internal_config, three_zones, grid_2x2):
    table = ZonalPipeline(internal_config).run(three_zones, grid_2x2)
    assert len(table) == 3
    ids, means = table.values("mean")
    assert ids == [1, 2]
    assert means.tolist() == [1.0, 3.0]


def test_zones_reprojected_to_field_crs(internal_config, mercator_grid):
    # 0.9 degrees is ~100.2 km at the equator, so each box holds one cell center
    zones = make_store([square(0, 0, size=0.9), square(0.9, 0.9, size=0.9)], crs="EPSG:4326")
    table = ZonalPipeline(internal_config).run(zones, mercator_grid)

    assert table.crs == zones.crs
    assert table.values("mean")[1].tolist() == [3.0, 2.0]
    assert table.to_frame()["geometry"].iloc[0].equals(zones[0].geometry)


def test_missing_inputs_raise_format_error(internal_config, grid_2x2):
    pipeline = ZonalPipeline(internal_config)
    with pytest.raises(FormatError, match="No zones given"):
        pipeline.run(None, grid_2x2)
    with pytest.raises(FormatError, match="No field given"):
        pipeline.load_field()


def test_cancel_is_sticky(internal_config, three_zones, grid_2x2):
    pipeline = ZonalPipeline(internal_config)
    pipeline.cancel()
    assert pipeline.cancelled
    with pytest.raises(PipelineCancelled):
        pipeline.run(three_zones, grid_2x2)
    with pytest.raises(PipelineCancelled):
        pipeline.run(three_zones, grid_2x2)


def test_export_without_path_returns_none(internal_config, three_zones, grid_2x2):
    pipeline = ZonalPipeline(internal_config)
    table = pipeline.run(three_zones, grid_2x2)
    assert pipeline.export(table) is None


@pytest.mark.integration
def test_export_parquet(internal_config, three_zones, grid_2x2, temp_dir):
    pipeline = ZonalPipeline(internal_config)
    table = pipeline.run(three_zones, grid_2x2)
    path = pipeline.export(table, temp_dir / "nested" / "out.parquet")

    written = pq.read_table(path)
    assert written.schema.metadata[b"zonal:crs"] == b"EPSG:3857"
    frame = written.to_pandas()
    assert frame["zone_id"].tolist() == [1, 2, 3]
    assert pd.isna(frame["mean"].iloc[2])


@pytest.mark.integration
def test_start_exports_csv_from_config(temp_dir, three_zones, grid_2x2, restore_root_logger):
    out = temp_dir / "out.csv"
    config = resolve_config(None, UserConfig(OUTPUT=str(out)), {"output": str(out)})
    assert config.output.format == "csv"

    ZonalPipeline(config).start(three_zones, grid_2x2)

    frame = pd.read_csv(out)
    assert frame["zone_id"].tolist() == [1, 2, 3]
    assert frame["geometry"].iloc[0].startswith("POLYGON")


@pytest.mark.integration
def test_setup_logging_writes_log_file(temp_dir, restore_root_logger):
    log_file = temp_dir / "logs" / "zonal.log"
    config = resolve_config(ParamConfig(logging={"level": "DEBUG", "log_file": str(log_file)}))
    ZonalPipeline(config)._setup_logging()

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
    logging.getLogger("zonal.test").info("hello")
    for handler in root.handlers:
        handler.flush()
    assert "zonal.test - INFO - hello" in log_file.read_text()


@pytest.mark.integration
def test_end_to_end_from_files(make_config, temp_dir, grid_2x2):
    zones_path = temp_dir / "zones.geojson"
    doc = feature_collection(
        [square(0, 1), square(1, 0, width=1, height=2)],
        properties=[{"code": "A"}, {"code": "B"}],
        crs_name="EPSG:3857",
    )
    zones_path.write_text(json.dumps(doc))
    field_path = write_grid_netcdf(temp_dir / "field.nc", grid_2x2)

    config = make_config(ZONES=str(zones_path), FIELD=str(field_path),
                         ZONE_ID_FIELD="code", STATISTICS=["mean", "max"])
    table = ZonalPipeline(config).run()

    frame = table.to_frame()
    assert frame["zone_id"].tolist() == ["A", "B"]
    assert frame["max"].tolist() == [1.0, 4.0]


@pytest.mark.integration
def test_end_to_end_points_csv(make_config, temp_dir):
    zones = make_store([square(0, 0, size=10)], crs="EPSG:3857")
    rows = [(1, 1.0, 1.0, 5.0), (2, 2.0, 2.0, 7.0), (3, 20.0, 20.0, 100.0)]
    csv_path = write_points_csv(temp_dir / "traps.csv", rows)

    config = make_config(FIELD_CRS="EPSG:3857", VALUE="value", STATISTICS=["sum"])
    table = ZonalPipeline(config).run(zones, str(csv_path))
    assert table.values("sum")[1].tolist() == [12.0]


def test_empty_store_runs_to_an_empty_table(internal_config, grid_2x2):
    table = ZonalPipeline(internal_config).run(make_store([]), grid_2x2)
    assert len(table) == 0
    assert table.statistics == ["mean", "count"]
    assert "mean" in table.to_frame().columns


def test_cancel_applies_to_empty_store(internal_config, grid_2x2, restore_root_logger):
    pipeline = ZonalPipeline(internal_config)
    pipeline.cancel()
    with pytest.raises(PipelineCancelled):
        pipeline.run(make_store([]), grid_2x2)
    with pytest.raises(PipelineCancelled):
        pipeline.start(make_store([]), grid_2x2)


@pytest.mark.integration
def test_start_exports_mixed_zone_ids(temp_dir, grid_2x2, restore_root_logger):
    out = temp_dir / "mixed.parquet"
    zones = make_store([square(0, 1), square(1, 1)], ids=[1, "east"])
    config = resolve_config(None, UserConfig(OUTPUT=str(out)), None)

    ZonalPipeline(config).start(zones, grid_2x2)

    assert pq.read_table(out).column("zone_id").to_pylist() == ["1", "east"]
