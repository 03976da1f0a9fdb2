"""ParamConfig: Expert defaults for the zonal pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. Runtime code NEVER reads from
ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional, Union
from pydantic import Field, field_validator
from zonal.schemas.base import ZonalBaseModel

StatisticName = Literal["mean", "sum", "count", "min", "max", "std"]
PredicateMode = Literal["center", "overlap", "within_distance"]
TieBreak = Literal["lowest_id", "highest_id", "first"]

_STAT_ALIASES = {"average": "mean", "avg": "mean", "n": "count", "stdev": "std", "sd": "std", "total": "sum"}


def normalize_statistics(v):
    """Accept a single name or a list, any case, with common aliases."""
    if v is None:
        return v
    if isinstance(v, str):
        v = [v]
    out = []
    for name in v:
        name = str(name).lower().strip()
        name = _STAT_ALIASES.get(name, name)
        if name not in out:
            out.append(name)
    return out


def normalize_choice(v):
    """Lowercase and snake_case a string choice ("Within-Distance" -> "within_distance")."""
    if isinstance(v, str):
        return v.lower().strip().replace("-", "_").replace(" ", "_")
    return v


# =============================================================================
# Nested Configuration Models
# =============================================================================

class ReaderConfig(ZonalBaseModel):
    """Zone / field reader configuration."""
    zone_id_field: Optional[str] = None
    zone_crs: Optional[str] = None
    field_variable: Optional[str] = None
    field_crs: Optional[str] = None
    nodata: Optional[float] = None
    point_x_col: str = "x"
    point_y_col: str = "y"
    point_id_col: Optional[str] = None
    load_timeout_sec: Optional[float] = Field(60.0, gt=0, description="Bound on each file load")


class PredicateConfig(ZonalBaseModel):
    """Spatial membership configuration."""
    mode: PredicateMode = "center"
    tie_break: TieBreak = "lowest_id"
    distance: float = Field(0.0, ge=0, description="Search distance for within_distance, CRS units")
    out_of_bounds: Literal["as_nodata", "fail_fast"] = "as_nodata"

    @field_validator("mode", "tie_break", "out_of_bounds", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return normalize_choice(v)


class AggregatorConfig(ZonalBaseModel):
    """Zone statistics configuration."""
    statistics: list[StatisticName] = Field(default_factory=lambda: ["mean", "count"])
    value: Optional[Union[int, str]] = Field(
        None, description="Grid band or point attribute to aggregate; None = band 0 / point counts"
    )

    @field_validator("statistics", mode="before")
    @classmethod
    def coerce_statistics(cls, v):
        return normalize_statistics(v)


class WorkersConfig(ZonalBaseModel):
    """Zone-level parallelism."""
    max_workers: int = Field(4, ge=1, le=64)


class OutputConfig(ZonalBaseModel):
    """Result table export."""
    path: Optional[str] = None
    format: Literal["parquet", "csv"] = "parquet"
    compression: Literal["snappy", "gzip", "zstd", "none"] = "snappy"


class LoggingConfig(ZonalBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Optional[str] = None


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(ZonalBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.

    Usage
    -----
        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    zones: Optional[str] = None
    field: Optional[str] = None
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    predicate: PredicateConfig = Field(default_factory=PredicateConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    workers: WorkersConfig = Field(default_factory=WorkersConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
