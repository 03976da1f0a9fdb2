"""zonal User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Expert defaults are in zonal/schemas/param.py

Usage:
    python scripts/run_zonal_pipeline.py --config scripts/user_config.py
    python scripts/run_zonal_pipeline.py --config scripts/user_config.py -o out.csv
"""

CONFIG = {
    # ========================================================================
    # INPUTS
    # ========================================================================
    "ZONES": "data/districts.geojson",   # GeoJSON FeatureCollection
    "FIELD": "data/ndvi.nc",             # NetCDF grid or CSV of points
    "OUTPUT": "output/ndvi_by_district.parquet",

    # ========================================================================
    # READER SETTINGS
    # ========================================================================
    "ZONE_ID_FIELD": "district_id",  # Property used as zone id (None = feature "id")
    "ZONE_CRS": None,                # Override CRS of the zones (None = from file, else EPSG:4326)
    "FIELD_VARIABLE": None,          # NetCDF variable (None = the only gridded variable)
    "FIELD_CRS": None,               # Required for CSV points; overrides NetCDF grid_mapping
    "NODATA": None,                  # Nodata value (None = from _FillValue / nodata attrs)
    "LOAD_TIMEOUT_SEC": 120,

    # ========================================================================
    # MEMBERSHIP
    # ========================================================================
    "PREDICATE": "center",       # "center", "overlap" or "within_distance"
    "DISTANCE": None,            # Required for within_distance, field CRS units
    "TIE_BREAK": "lowest_id",    # "lowest_id", "highest_id" or "first"

    # ========================================================================
    # AGGREGATION
    # ========================================================================
    "STATISTICS": ["mean", "std", "count"],
    "VALUE": None,               # Band index/name, or point column (None = count points)
    "MAX_WORKERS": 4,
}
