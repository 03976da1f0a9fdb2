"""Field sources: gridded fields and point observations.

``load_field`` dispatches on the source (NetCDF → GridField, CSV →
PointField, in-memory objects pass through). ``sample_many`` is the batch
counterpart of ``GridField.sample_at`` that applies the out-of-bounds
failure policy.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd
import xarray as xr

from zonal.contracts.failure import FailurePolicy, FormatError, OutOfBoundsError
from zonal.core.types import GridField, PointField
from zonal.io.timeout import run_with_timeout

__all__ = ['load_field', 'sample_many', 'FieldLike']

logger = logging.getLogger(__name__)

FieldLike = Union[GridField, PointField]

GRID_SUFFIXES = {".nc", ".nc4", ".netcdf", ".cdf"}
POINT_SUFFIXES = {".csv", ".txt"}


def load_field(source, *, crs=None, variable: Optional[str] = None,
               nodata: Optional[float] = None, x_col: str = "x", y_col: str = "y",
               id_col: Optional[str] = None, value_cols: Optional[Sequence[str]] = None,
               timeout: Optional[float] = None) -> FieldLike:
    """Load a grid field or point observations.

    Parameters
    ----------
    source : path, xr.DataArray, pd.DataFrame, GridField or PointField
        NetCDF paths and DataArrays become a GridField; CSV paths and
        DataFrames become a PointField.
    crs : optional
        Declared CRS. Required for point sources; for grids it overrides any
        CRS embedded in the file.
    timeout : float, optional
        Bound in seconds on the file read.

    Raises
    ------
    FormatError
        Unknown source kind or malformed content.
    LoadTimeoutError
        The read exceeded ``timeout``.
    """
    from zonal.io.points import points_from_frame, read_points
    from zonal.io.raster import read_grid

    if isinstance(source, (GridField, PointField)):
        return source
    if isinstance(source, xr.DataArray):
        return GridField.from_xarray(source, crs=crs, nodata=nodata)
    if isinstance(source, pd.DataFrame):
        return points_from_frame(source, crs, x_col=x_col, y_col=y_col, id_col=id_col, value_cols=value_cols)

    if not isinstance(source, (str, Path)):
        raise FormatError(f"Unsupported field source: {type(source).__name__}")
    suffix = Path(source).suffix.lower()
    if suffix in GRID_SUFFIXES:
        return run_with_timeout(read_grid, source, variable=variable, crs=crs, nodata=nodata,
                                timeout=timeout, description="field load")
    if suffix in POINT_SUFFIXES:
        return run_with_timeout(read_points, source, crs, x_col=x_col, y_col=y_col,
                                id_col=id_col, value_cols=value_cols,
                                timeout=timeout, description="field load")
    raise FormatError(f"Cannot infer field type from suffix {suffix!r}")


def sample_many(field: GridField, xs, ys, band: Union[int, str] = 0,
                policy: FailurePolicy = FailurePolicy.AS_NODATA) -> np.ndarray:
    """Sample a grid at many coordinates.

    Nodata cells come back as NaN. Out-of-bounds coordinates are handled
    per ``policy``: ``AS_NODATA`` turns them into NaN and logs a warning,
    ``FAIL_FAST`` re-raises the first ``OutOfBoundsError``.
    """
    policy = FailurePolicy(policy)
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    out = np.full(xs.shape, np.nan)
    n_outside = 0
    for i, (x, y) in enumerate(zip(xs, ys)):
        try:
            value = field.sample_at(x, y, band=band)
        except OutOfBoundsError:
            if policy is FailurePolicy.FAIL_FAST:
                raise
            n_outside += 1
            continue
        if value is not None:
            out[i] = value
    if n_outside:
        logger.warning("%d of %d sample coordinates outside field extent %s; treated as nodata",
                       n_outside, len(xs), field.bounds)
    return out
