"""Read gridded fields (NDVI, elevation, rainfall...) from NetCDF via xarray.

The CRS is resolved in this order: explicit argument, the variable's CF
``grid_mapping`` variable (``crs_wkt`` / ``spatial_ref``), then a ``crs``
attribute on the variable or dataset.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import xarray as xr

from zonal.contracts.failure import FormatError
from zonal.core.types import GridField

__all__ = ['read_grid']

logger = logging.getLogger(__name__)


def _pick_variable(ds: xr.Dataset, variable: Optional[str]) -> xr.DataArray:
    if variable is not None:
        if variable not in ds.data_vars:
            raise FormatError(f"Variable {variable!r} not in dataset: {list(ds.data_vars)}")
        return ds[variable]
    gridded = [name for name, da in ds.data_vars.items() if da.ndim >= 2]
    if len(gridded) != 1:
        raise FormatError(
            f"Cannot choose a grid variable automatically from {gridded}; set field_variable"
        )
    return ds[gridded[0]]


def _cf_crs(ds: xr.Dataset, da: xr.DataArray):
    mapping_name = da.attrs.get("grid_mapping") or da.encoding.get("grid_mapping")
    if mapping_name and mapping_name in ds.variables:
        attrs = ds[mapping_name].attrs
        return attrs.get("crs_wkt") or attrs.get("spatial_ref")
    return da.attrs.get("crs") or ds.attrs.get("crs")


def read_grid(path: Union[str, Path], variable: Optional[str] = None,
              crs=None, nodata: Optional[float] = None) -> GridField:
    """Load one variable of a NetCDF file as a GridField.

    Raises
    ------
    FormatError
        Missing/unreadable file, ambiguous or missing variable, irregular
        grid, or no resolvable CRS.
    """
    path = Path(path)
    if not path.exists():
        raise FormatError(f"Raster source not found: {path}")
    try:
        with xr.open_dataset(path) as ds:
            da = _pick_variable(ds, variable)
            resolved_crs = crs if crs is not None else _cf_crs(ds, da)
            da = da.load()
    except (OSError, ValueError) as e:
        if isinstance(e, FormatError):
            raise
        raise FormatError(f"Could not read raster {path.name}: {e}") from e

    grid = GridField.from_xarray(da, crs=resolved_crs, nodata=nodata)
    logger.info("Loaded grid %s: %s %dx%d (cell %.4g x %.4g, crs=%s)",
                path.name, grid.name, grid.rows, grid.cols,
                grid.cell_size[0], grid.cell_size[1], grid.crs)
    return grid
