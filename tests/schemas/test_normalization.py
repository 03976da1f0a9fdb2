"""Tests for forgiving name normalization in user/CLI configs."""

import pytest

from zonal.schemas import CLIConfig, UserConfig
from zonal.schemas.param import normalize_choice, normalize_statistics

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("raw,expected", [
    ("mean", ["mean"]),
    ("AVG", ["mean"]),
    (["Mean", "average", "stdev"], ["mean", "std"]),
    (["total", "n"], ["sum", "count"]),
    (None, None),
])
def test_normalize_statistics(raw, expected):
    assert normalize_statistics(raw) == expected


def test_normalize_choice():
    assert normalize_choice("Within-Distance") == "within_distance"
    assert normalize_choice("lowest id") == "lowest_id"
    assert normalize_choice(None) is None


def test_user_config_accepts_lowercase_names():
    user = UserConfig(zones="z.geojson", statistics="max", predicate="Overlap")
    assert user.zones == "z.geojson"
    assert user.statistics == ["max"]
    assert user.predicate == "overlap"


def test_user_numeric_fields_coerced():
    user = UserConfig(NODATA=-9999, DISTANCE=10)
    assert user.nodata == -9999.0
    assert isinstance(user.distance, float)


def test_cli_output_format_inferred_from_suffix():
    assert CLIConfig(output="x.CSV").to_internal_overrides()["output"]["format"] == "csv"
    assert "format" not in CLIConfig(output="x.parquet").to_internal_overrides()["output"]
    assert CLIConfig(output="x.csv", output_format="parquet").to_internal_overrides()["output"]["format"] == "parquet"


def test_cli_empty_has_no_overrides():
    assert CLIConfig().to_internal_overrides() == {}
