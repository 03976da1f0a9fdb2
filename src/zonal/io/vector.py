"""Read zone features from GeoJSON.

Accepts a path, raw GeoJSON text/bytes, or an already-parsed mapping. Every
feature is validated into a ``Feature`` record at load time; anything that
does not fit (bad geometry, nested attribute values, duplicate ids) is a
``FormatError``.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from pydantic import ValidationError
from shapely.errors import GeometryTypeError, ShapelyError
from shapely.geometry import shape

from zonal.contracts.failure import FormatError
from zonal.core.types import Feature

__all__ = ['read_geojson']

logger = logging.getLogger(__name__)

# RFC 7946: GeoJSON without a "crs" member is WGS 84 lon/lat.
GEOJSON_DEFAULT_CRS = "EPSG:4326"

Source = Union[str, Path, bytes, dict]


def _parse(source: Source) -> dict:
    if isinstance(source, dict):
        return source
    if isinstance(source, bytes):
        text = source.decode("utf-8")
    elif isinstance(source, Path) or (isinstance(source, str) and not source.lstrip().startswith("{")):
        path = Path(source)
        if not path.exists():
            raise FormatError(f"Vector source not found: {path}")
        text = path.read_text(encoding="utf-8")
    else:
        text = source
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"Not valid GeoJSON: {e}") from e


def _embedded_crs(doc: dict) -> Optional[str]:
    """Legacy (2008 spec) named CRS member, e.g. urn:ogc:def:crs:EPSG::27700."""
    crs = doc.get("crs")
    if not isinstance(crs, dict):
        return None
    return crs.get("properties", {}).get("name")


def _feature_id(raw: dict, position: int, id_field: Optional[str]) -> Any:
    if id_field is not None:
        props = raw.get("properties") or {}
        if id_field not in props:
            raise FormatError(f"Feature {position} has no id property {id_field!r}")
        return props[id_field]
    if raw.get("id") is not None:
        return raw["id"]
    return position


def read_geojson(source: Source, id_field: Optional[str] = None) -> Tuple[List[Feature], str]:
    """Parse GeoJSON into Feature records.

    Parameters
    ----------
    source : path, str, bytes or dict
        FeatureCollection or single Feature.
    id_field : str, optional
        Property holding the zone identity. Falls back to the GeoJSON
        ``id`` member, then to the feature's position.

    Returns
    -------
    (features, crs)
        ``crs`` is the embedded CRS name or the RFC 7946 default.

    Raises
    ------
    FormatError
        Unreadable source, unsupported document type, or an invalid feature.
    """
    doc = _parse(source)
    kind = doc.get("type")
    if kind == "FeatureCollection":
        raw_features = doc.get("features")
        if not isinstance(raw_features, list):
            raise FormatError("FeatureCollection has no 'features' list")
    elif kind == "Feature":
        raw_features = [doc]
    else:
        raise FormatError(f"Unsupported GeoJSON type: {kind!r}")

    features = []
    for position, raw in enumerate(raw_features):
        if not isinstance(raw, dict) or raw.get("geometry") is None:
            raise FormatError(f"Feature {position} has no geometry")
        try:
            geometry = shape(raw["geometry"])
        except (GeometryTypeError, ShapelyError, KeyError, TypeError, ValueError) as e:
            raise FormatError(f"Feature {position}: unreadable geometry: {e}") from e
        try:
            features.append(Feature(
                feature_id=_feature_id(raw, position, id_field),
                geometry=geometry,
                attributes=raw.get("properties") or {},
            ))
        except ValidationError as e:
            raise FormatError(f"Feature {position} failed validation: {e}") from e

    crs = _embedded_crs(doc) or GEOJSON_DEFAULT_CRS
    logger.debug("Read %d features (crs=%s)", len(features), crs)
    return features, crs
