"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized and frozen. Runtime modules access fields directly - no .get(),
no fallback defaults.
"""

from typing import Literal, Optional, Union
from pydantic import Field, ConfigDict, model_validator
from zonal.schemas.base import ZonalBaseModel
from zonal.schemas.param import PredicateMode, StatisticName, TieBreak


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalReaderConfig(ZonalBaseModel):
    """Runtime reader configuration."""
    zone_id_field: Optional[str]
    zone_crs: Optional[str]
    field_variable: Optional[str]
    field_crs: Optional[str]
    nodata: Optional[float]
    point_x_col: str
    point_y_col: str
    point_id_col: Optional[str]
    load_timeout_sec: Optional[float] = Field(gt=0)


class InternalPredicateConfig(ZonalBaseModel):
    """Runtime membership configuration."""
    mode: PredicateMode
    tie_break: TieBreak
    distance: float = Field(ge=0)
    out_of_bounds: Literal["as_nodata", "fail_fast"]

    @model_validator(mode="after")
    def distance_required_for_within_distance(self):
        if self.mode == "within_distance" and self.distance <= 0:
            raise ValueError("predicate.distance must be > 0 when mode is 'within_distance'")
        return self


class InternalAggregatorConfig(ZonalBaseModel):
    """Runtime aggregation configuration."""
    statistics: list[StatisticName] = Field(min_length=1)
    value: Optional[Union[int, str]]


class InternalWorkersConfig(ZonalBaseModel):
    """Runtime parallelism."""
    max_workers: int = Field(ge=1, le=64)


class InternalOutputConfig(ZonalBaseModel):
    """Runtime output configuration."""
    path: Optional[str]
    format: Literal["parquet", "csv"]
    compression: Literal["snappy", "gzip", "zstd", "none"]


class InternalLoggingConfig(ZonalBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    log_file: Optional[str]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(ZonalBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.mode = config.predicate.mode  # NOT .get()

    ``zones`` and ``field`` may be None here; the orchestrator requires them
    (or explicit arguments) at run time.
    """

    zones: Optional[str]
    field: Optional[str]
    reader: InternalReaderConfig
    predicate: InternalPredicateConfig
    aggregator: InternalAggregatorConfig
    workers: InternalWorkersConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
