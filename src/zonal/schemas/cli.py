"""CLIConfig: Command-line operational overrides.

Operational parameters that commonly change between runs: which inputs,
which statistics, where the output goes, verbosity.
"""

from typing import Literal, Optional
from pydantic import field_validator
from zonal.schemas.base import ZonalBaseModel
from zonal.schemas.param import normalize_choice, normalize_statistics


class CLIConfig(ZonalBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            zones="districts.geojson",
            field="ndvi.nc",
            statistics=["mean"],
            output="ndvi_by_district.parquet",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    zones: Optional[str] = None
    field: Optional[str] = None
    output: Optional[str] = None
    output_format: Optional[Literal["parquet", "csv"]] = None
    statistics: Optional[list[str]] = None
    predicate: Optional[str] = None
    distance: Optional[float] = None
    tie_break: Optional[str] = None
    zone_id_field: Optional[str] = None
    max_workers: Optional[int] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    @field_validator("statistics", mode="before")
    @classmethod
    def coerce_statistics(cls, v):
        return normalize_statistics(v)

    @field_validator("predicate", "tie_break", mode="before")
    @classmethod
    def normalize_names(cls, v):
        return normalize_choice(v)

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure."""
        overrides = {}

        if self.zones is not None:
            overrides["zones"] = self.zones
        if self.field is not None:
            overrides["field"] = self.field

        output = {}
        if self.output is not None:
            output["path"] = self.output
            if self.output_format is None and self.output.lower().endswith(".csv"):
                output["format"] = "csv"
        if self.output_format is not None:
            output["format"] = self.output_format
        if output:
            overrides["output"] = output

        predicate = {}
        if self.predicate is not None:
            predicate["mode"] = self.predicate
        if self.distance is not None:
            predicate["distance"] = self.distance
        if self.tie_break is not None:
            predicate["tie_break"] = self.tie_break
        if predicate:
            overrides["predicate"] = predicate

        if self.statistics is not None:
            overrides["aggregator"] = {"statistics": self.statistics}
        if self.zone_id_field is not None:
            overrides["reader"] = {"zone_id_field": self.zone_id_field}
        if self.max_workers is not None:
            overrides["workers"] = {"max_workers": self.max_workers}
        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
