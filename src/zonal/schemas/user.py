"""UserConfig: Forgiving, minimal user-facing configuration.

Accepts flat uppercase aliases (ZONES, FIELD, STATISTICS, PREDICATE...) as
well as lowercase names and nested section overrides. Users only specify
what they want to change from the expert defaults.
"""

from typing import Any, Optional, Union
from pydantic import Field, field_validator
from zonal.schemas.base import ZonalBaseModel
from zonal.schemas.param import normalize_choice, normalize_statistics


class UserReaderConfig(ZonalBaseModel):
    """User-facing reader config."""
    zone_id_field: Optional[str] = None
    zone_crs: Optional[str] = None
    field_variable: Optional[str] = None
    field_crs: Optional[str] = None
    nodata: Optional[float] = None
    point_x_col: Optional[str] = None
    point_y_col: Optional[str] = None
    point_id_col: Optional[str] = None
    load_timeout_sec: Optional[float] = None


class UserPredicateConfig(ZonalBaseModel):
    """User-facing predicate config."""
    mode: Optional[str] = None
    tie_break: Optional[str] = None
    distance: Optional[float] = None
    out_of_bounds: Optional[str] = None

    @field_validator("mode", "tie_break", "out_of_bounds", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return normalize_choice(v)


class UserAggregatorConfig(ZonalBaseModel):
    """User-facing aggregator config."""
    statistics: Optional[list[str]] = None
    value: Optional[Union[int, str]] = None

    @field_validator("statistics", mode="before")
    @classmethod
    def coerce_statistics(cls, v):
        return normalize_statistics(v)


class UserConfig(ZonalBaseModel):
    """User-facing configuration schema.

    Usage
    -----
        user_cfg = UserConfig(
            ZONES="districts.geojson",
            FIELD="ndvi.nc",
            STATISTICS=["mean", "max"],
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Inputs
    zones: Optional[str] = Field(None, alias="ZONES")
    field: Optional[str] = Field(None, alias="FIELD")
    output: Optional[str] = Field(None, alias="OUTPUT")

    # Reader settings (flat aliases)
    zone_id_field: Optional[str] = Field(None, alias="ZONE_ID_FIELD")
    zone_crs: Optional[str] = Field(None, alias="ZONE_CRS")
    field_variable: Optional[str] = Field(None, alias="FIELD_VARIABLE")
    field_crs: Optional[str] = Field(None, alias="FIELD_CRS")
    nodata: Optional[float] = Field(None, alias="NODATA")
    point_x_col: Optional[str] = Field(None, alias="POINT_X_COL")
    point_y_col: Optional[str] = Field(None, alias="POINT_Y_COL")
    point_id_col: Optional[str] = Field(None, alias="POINT_ID_COL")
    load_timeout_sec: Optional[float] = Field(None, alias="LOAD_TIMEOUT_SEC")

    # Membership settings (flat aliases)
    predicate: Optional[str] = Field(None, alias="PREDICATE")
    tie_break: Optional[str] = Field(None, alias="TIE_BREAK")
    distance: Optional[float] = Field(None, alias="DISTANCE")

    # Aggregation settings (flat aliases)
    statistics: Optional[list[str]] = Field(None, alias="STATISTICS")
    value: Optional[Union[int, str]] = Field(None, alias="VALUE")
    max_workers: Optional[int] = Field(None, alias="MAX_WORKERS")

    # Nested overrides (advanced users)
    reader: Optional[UserReaderConfig] = None
    predicate_cfg: Optional[UserPredicateConfig] = Field(None, alias="predicate_config")
    aggregator: Optional[UserAggregatorConfig] = None

    model_config = ZonalBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("statistics", mode="before")
    @classmethod
    def coerce_statistics(cls, v):
        return normalize_statistics(v)

    @field_validator("predicate", "tie_break", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return normalize_choice(v)

    @field_validator("nodata", "distance", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure."""
        overrides: dict[str, Any] = {}

        if self.zones is not None:
            overrides["zones"] = self.zones
        if self.field is not None:
            overrides["field"] = self.field
        if self.output is not None:
            overrides["output"] = {"path": self.output}

        # Reader section
        reader = {
            k: getattr(self, k)
            for k in UserReaderConfig.model_fields
            if getattr(self, k) is not None
        }
        if self.reader is not None:
            reader.update(self.reader.model_dump(exclude_none=True))
        if reader:
            overrides["reader"] = reader

        # Predicate section
        predicate = {}
        if self.predicate is not None:
            predicate["mode"] = self.predicate
        if self.tie_break is not None:
            predicate["tie_break"] = self.tie_break
        if self.distance is not None:
            predicate["distance"] = self.distance
        if self.predicate_cfg is not None:
            predicate.update(self.predicate_cfg.model_dump(exclude_none=True))
        if predicate:
            overrides["predicate"] = predicate

        # Aggregator section
        aggregator = {}
        if self.statistics is not None:
            aggregator["statistics"] = self.statistics
        if self.value is not None:
            aggregator["value"] = self.value
        if self.aggregator is not None:
            aggregator.update(self.aggregator.model_dump(exclude_none=True))
        if aggregator:
            overrides["aggregator"] = aggregator

        if self.max_workers is not None:
            overrides["workers"] = {"max_workers": self.max_workers}

        return overrides
