"""Tests for the zonal-run command line entry point."""

import json
import logging

import pandas as pd
import pytest

from zonal.cli.run_zonal import build_parser, load_user_config_dict, main

from tests.helpers.fake_fields import make_grid, write_grid_netcdf
from tests.helpers.fake_zones import feature_collection, square

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def inputs(temp_dir):
    zones_path = temp_dir / "zones.geojson"
    zones_path.write_text(json.dumps(feature_collection(
        [square(0, 1), square(1, 0, width=1, height=2)], ids=[1, 2], crs_name="EPSG:3857")))
    field_path = write_grid_netcdf(temp_dir / "field.nc", make_grid([[1.0, 2.0], [3.0, 4.0]]))
    return str(zones_path), str(field_path)


def test_load_user_config_dict(temp_dir):
    path = temp_dir / "my_config.py"
    path.write_text('CONFIG = {"STATISTICS": ["max"], "PREDICATE": "overlap"}\n')
    assert load_user_config_dict(str(path)) == {"STATISTICS": ["max"], "PREDICATE": "overlap"}


def test_load_user_config_dict_prefers_plain_config(temp_dir):
    path = temp_dir / "variants.py"
    path.write_text('CONFIG_ALT = {"STATISTICS": ["min"]}\nCONFIG = {"STATISTICS": ["max"]}\n')
    assert load_user_config_dict(str(path)) == {"STATISTICS": ["max"]}


def test_load_user_config_dict_errors(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(str(temp_dir / "missing.py"))
    path = temp_dir / "empty.py"
    path.write_text("SETTINGS = 1\n")
    with pytest.raises(ValueError, match="No CONFIG dict"):
        load_user_config_dict(str(path))


def test_parser_collects_repeated_statistics():
    args = build_parser().parse_args(["z.geojson", "f.nc", "-s", "mean", "-s", "max", "--tie-break", "first"])
    assert args.zones == "z.geojson"
    assert args.statistics == ["mean", "max"]
    assert args.tie_break == "first"
    assert args.output is None


@pytest.mark.integration
def test_main_writes_csv(inputs, temp_dir, capsys):
    out = temp_dir / "result.csv"
    code = main([*inputs, "-o", str(out), "-s", "sum", "--max-workers", "1"])

    assert code == 0
    assert "Done: 2 zones" in capsys.readouterr().out
    frame = pd.read_csv(out)
    assert frame["sum"].tolist() == [1.0, 6.0]


@pytest.mark.integration
def test_main_with_config_file(inputs, temp_dir):
    zones, field = inputs
    config_path = temp_dir / "user_config.py"
    out = temp_dir / "result.parquet"
    config_path.write_text(f"CONFIG = {{'ZONES': {zones!r}, 'FIELD': {field!r}, 'OUTPUT': {str(out)!r}}}\n")

    assert main(["--config", str(config_path)]) == 0
    assert out.exists()


def test_main_returns_error_code_on_bad_input(temp_dir, capsys):
    code = main([str(temp_dir / "missing.geojson"), str(temp_dir / "missing.nc")])
    assert code == 1
    assert "error:" in capsys.readouterr().err
