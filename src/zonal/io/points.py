"""Read point observations (case locations, trap counts...) from CSV via pandas."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError

from zonal.contracts.failure import CRSError, FormatError
from zonal.core.types import PointField, PointObservation

__all__ = ['read_points', 'points_from_frame']

logger = logging.getLogger(__name__)


def points_from_frame(df: pd.DataFrame, crs, x_col: str = "x", y_col: str = "y",
                      id_col: Optional[str] = None,
                      value_cols: Optional[Sequence[str]] = None) -> PointField:
    """Convert a DataFrame of observations into a PointField.

    Value columns are coerced to numbers; anything unparseable becomes
    nodata (None). Coordinates must be numeric and finite.

    Raises
    ------
    CRSError
        No CRS given; CSV carries none of its own.
    FormatError
        Missing columns or non-finite coordinates.
    """
    if crs is None:
        raise CRSError("Point observations carry no CRS; declare one (reader.field_crs)")

    needed = [x_col, y_col] + ([id_col] if id_col else [])
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise FormatError(f"Point table missing columns: {missing}")

    if value_cols is None:
        value_cols = [c for c in df.columns if c not in needed]

    xs = pd.to_numeric(df[x_col], errors="coerce").to_numpy(dtype=float)
    ys = pd.to_numeric(df[y_col], errors="coerce").to_numpy(dtype=float)
    bad = ~(np.isfinite(xs) & np.isfinite(ys))
    if bad.any():
        first = int(np.flatnonzero(bad)[0])
        raise FormatError(f"{int(bad.sum())} point(s) with non-finite coordinates (first at row {first})")

    numeric = {c: pd.to_numeric(df[c], errors="coerce") for c in value_cols}
    ids = df[id_col].tolist() if id_col else list(range(len(df)))

    observations = []
    try:
        for i, obs_id in enumerate(ids):
            values = {c: (None if pd.isna(numeric[c].iat[i]) else float(numeric[c].iat[i]))
                      for c in value_cols}
            observations.append(PointObservation(obs_id=obs_id, x=xs[i], y=ys[i], values=values))
        return PointField(observations=tuple(observations), crs=crs)
    except ValidationError as e:
        raise FormatError(f"Point table failed validation: {e}") from e


def read_points(path: Union[str, Path], crs, x_col: str = "x", y_col: str = "y",
                id_col: Optional[str] = None,
                value_cols: Optional[Sequence[str]] = None) -> PointField:
    """Load a CSV of point observations as a PointField."""
    path = Path(path)
    if not path.exists():
        raise FormatError(f"Point source not found: {path}")
    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise FormatError(f"Could not read points {path.name}: {e}") from e

    field = points_from_frame(df, crs, x_col=x_col, y_col=y_col, id_col=id_col, value_cols=value_cols)
    logger.info("Loaded %d point observations from %s (crs=%s)", len(field), path.name, field.crs)
    return field
