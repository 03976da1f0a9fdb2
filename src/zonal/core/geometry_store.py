"""Ordered, immutable collection of zone features sharing one CRS."""

import logging
from typing import Callable, Iterator, List, Optional, Sequence, Union

import numpy as np
import shapely

from zonal.contracts.failure import FormatError
from zonal.core.crs import crs_label, transform_geometries
from zonal.core.types import Feature
from zonal.io.timeout import run_with_timeout

__all__ = ['GeometryStore', 'geometry_family']

logger = logging.getLogger(__name__)

_FAMILIES = {
    "Point": "point",
    "MultiPoint": "point",
    "LineString": "line",
    "LinearRing": "line",
    "MultiLineString": "line",
    "Polygon": "polygon",
    "MultiPolygon": "polygon",
}


def geometry_family(geom) -> str:
    """'point', 'line' or 'polygon'. GeometryCollections are not zones."""
    family = _FAMILIES.get(geom.geom_type)
    if family is None:
        raise FormatError(f"Unsupported zone geometry type: {geom.geom_type}")
    return family


class GeometryStore:
    """Zone features, in input order, with a single CRS.

    A store is never mutated: ``reproject``, ``filter`` and ``buffer`` return
    new stores that keep feature identities and order.

    Raises
    ------
    FormatError
        On duplicate feature ids or when geometry families are mixed
        (e.g. polygons and points in one store).

    Examples
    --------
    >>> store = GeometryStore.load("districts.geojson", id_field="district")
    >>> utm = store.reproject("EPSG:32633")
    >>> big = utm.filter(lambda f: f.geometry.area > 1e6)
    """

    def __init__(self, features: Sequence[Feature], crs):
        self._features = tuple(features)
        self._crs = crs_label(crs)
        self._family = self._check_features(self._features)

    @staticmethod
    def _check_features(features) -> Optional[str]:
        seen = set()
        families = set()
        for f in features:
            if f.feature_id in seen:
                raise FormatError(f"Duplicate feature id: {f.feature_id!r}")
            seen.add(f.feature_id)
            families.add(geometry_family(f.geometry))
        if len(families) > 1:
            raise FormatError(f"Inconsistent geometry types in one store: {sorted(families)}")
        return families.pop() if families else None

    @classmethod
    def load(cls, source, crs=None, id_field: Optional[str] = None,
             timeout: Optional[float] = None) -> "GeometryStore":
        """Load a store from GeoJSON (path, text, bytes, mapping) or a list of Features.

        ``crs`` overrides any CRS embedded in the source.

        Raises
        ------
        FormatError
            Unreadable source or invalid/inconsistent features.
        LoadTimeoutError
            Reading took longer than ``timeout`` seconds.
        """
        from zonal.io.vector import read_geojson

        if isinstance(source, (list, tuple)) and all(isinstance(f, Feature) for f in source):
            if crs is None:
                raise FormatError("A CRS is required when loading from in-memory features")
            return cls(source, crs)

        features, embedded_crs = run_with_timeout(
            read_geojson, source, id_field=id_field,
            timeout=timeout, description="zone load",
        )
        store = cls(features, crs if crs is not None else embedded_crs)
        logger.info("Loaded %d zones (%s, crs=%s)", len(store), store.geometry_type, store.crs)
        return store

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features)

    def __getitem__(self, index: int) -> Feature:
        return self._features[index]

    def __repr__(self) -> str:
        return f"GeometryStore(n={len(self)}, type={self.geometry_type}, crs={self.crs})"

    @property
    def crs(self) -> str:
        return self._crs

    @property
    def geometry_type(self) -> Optional[str]:
        """Geometry family of the store, None when empty."""
        return self._family

    @property
    def features(self) -> tuple:
        return self._features

    @property
    def ids(self) -> List[Union[int, str]]:
        return [f.feature_id for f in self._features]

    @property
    def geometries(self) -> np.ndarray:
        return np.array([f.geometry for f in self._features], dtype=object)

    @property
    def bounds(self) -> Optional[tuple]:
        """(minx, miny, maxx, maxy) over all zones, None when empty."""
        if not self._features:
            return None
        return tuple(shapely.total_bounds(self.geometries).tolist())

    # ------------------------------------------------------------------
    # Derived stores
    # ------------------------------------------------------------------

    def _with_geometries(self, geometries, crs) -> "GeometryStore":
        features = [
            f.model_copy(update={"geometry": g})
            for f, g in zip(self._features, geometries)
        ]
        return GeometryStore(features, crs)

    def reproject(self, target_crs) -> "GeometryStore":
        """New store with every geometry transformed to ``target_crs``.

        Raises
        ------
        CRSError
            If no transformation path exists between the two CRS.
        """
        target = crs_label(target_crs)
        if target == self._crs:
            return GeometryStore(self._features, self._crs)
        if not self._features:
            return GeometryStore((), target)
        logger.info("Reprojecting %d zones %s -> %s", len(self), self._crs, target)
        return self._with_geometries(transform_geometries(self.geometries, self._crs, target), target)

    def filter(self, predicate: Callable[[Feature], bool]) -> "GeometryStore":
        """Subsequence of features for which ``predicate`` is true, order preserved."""
        return GeometryStore([f for f in self._features if predicate(f)], self._crs)

    def buffer(self, distance: float) -> "GeometryStore":
        """Buffer every zone by ``distance`` CRS units (catchments around sites).

        Buffering in a geographic CRS uses degrees; reproject to a projected
        CRS first when metres are meant.
        """
        if distance <= 0:
            raise ValueError(f"buffer distance must be positive, got {distance}")
        if not self._features:
            return GeometryStore((), self._crs)
        return self._with_geometries(shapely.buffer(self.geometries, distance), self._crs)
