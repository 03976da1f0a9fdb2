"""Coordinate reference system helpers.

Thin wrappers over pyproj that translate pyproj failures into ``CRSError``
and keep the ``always_xy`` axis order convention in one place. Every
reprojection in ``zonal`` goes through ``make_transformer`` and
``transform_xy`` so that failures are reported with both CRS identifiers.
"""

import logging
from typing import Union

import numpy as np
import shapely
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError as PyprojCRSError, ProjError

from zonal.contracts.failure import CRSError

__all__ = ['to_crs', 'crs_label', 'crs_equal', 'make_transformer', 'transform_xy', 'transform_geometries']

logger = logging.getLogger(__name__)

CRSLike = Union[str, int, CRS]


def to_crs(value: CRSLike) -> CRS:
    """Parse anything pyproj understands (EPSG code, "EPSG:xxxx", WKT, PROJ string)."""
    if value is None:
        raise CRSError("CRS is required but none was given")
    if isinstance(value, CRS):
        return value
    try:
        return CRS.from_user_input(value)
    except PyprojCRSError as e:
        raise CRSError(f"Unrecognised CRS {value!r}: {e}", source_crs=value) from e


def crs_label(value: CRSLike) -> str:
    """Short, stable identifier for a CRS ("EPSG:4326" where possible)."""
    crs = to_crs(value)
    authority = crs.to_authority()
    if authority is not None:
        return f"{authority[0]}:{authority[1]}"
    return crs.to_string()


def crs_equal(a: CRSLike, b: CRSLike) -> bool:
    return to_crs(a) == to_crs(b)


def make_transformer(source: CRSLike, target: CRSLike) -> Transformer:
    """Build an x/y-ordered transformer between two CRS.

    Raises
    ------
    CRSError
        If either CRS is invalid or pyproj has no operation between them.
    """
    src, dst = to_crs(source), to_crs(target)
    try:
        return Transformer.from_crs(src, dst, always_xy=True)
    except (PyprojCRSError, ProjError) as e:
        raise CRSError(
            f"No transformation from {crs_label(src)} to {crs_label(dst)}: {e}",
            source_crs=crs_label(src),
            target_crs=crs_label(dst),
        ) from e


def transform_xy(transformer: Transformer, x, y):
    """Transform coordinate arrays, failing loudly on non-finite output.

    pyproj signals "no usable path" for individual points by returning inf,
    which would otherwise flow silently into geometry predicates.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    try:
        tx, ty = transformer.transform(x, y, errcheck=True)
    except ProjError as e:
        raise CRSError(
            f"Transformation {transformer.source_crs} -> {transformer.target_crs} failed: {e}",
            source_crs=crs_label(transformer.source_crs),
            target_crs=crs_label(transformer.target_crs),
        ) from e
    tx = np.asarray(tx, dtype=float)
    ty = np.asarray(ty, dtype=float)
    if not (np.all(np.isfinite(tx)) and np.all(np.isfinite(ty))):
        raise CRSError(
            f"Transformation {crs_label(transformer.source_crs)} -> "
            f"{crs_label(transformer.target_crs)} produced non-finite coordinates",
            source_crs=crs_label(transformer.source_crs),
            target_crs=crs_label(transformer.target_crs),
        )
    return tx, ty


def transform_geometries(geometries, source: CRSLike, target: CRSLike) -> np.ndarray:
    """Reproject an array of shapely geometries from ``source`` to ``target``."""
    transformer = make_transformer(source, target)

    def _apply(coords):
        tx, ty = transform_xy(transformer, coords[:, 0], coords[:, 1])
        return np.column_stack([tx, ty])

    out = shapely.transform(np.asarray(geometries, dtype=object), _apply)
    logger.debug("Reprojected %d geometries %s -> %s",
                 len(out), crs_label(source), crs_label(target))
    return out
