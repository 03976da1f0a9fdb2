"""Zone builders for tests: squares, stores and GeoJSON documents."""

from shapely.geometry import box, mapping

from zonal.core.geometry_store import GeometryStore
from zonal.core.types import Feature


def square(x0, y0, size=1.0, width=None, height=None):
    """Axis-aligned rectangle with lower-left corner (x0, y0)."""
    width = size if width is None else width
    height = size if height is None else height
    return box(x0, y0, x0 + width, y0 + height)


def make_features(geometries, ids=None, attributes=None):
    ids = list(range(1, len(geometries) + 1)) if ids is None else ids
    attributes = [{} for _ in geometries] if attributes is None else attributes
    return [
        Feature(feature_id=i, geometry=g, attributes=a)
        for i, g, a in zip(ids, geometries, attributes)
    ]


def make_store(geometries, ids=None, crs="EPSG:3857", attributes=None):
    return GeometryStore(make_features(geometries, ids, attributes), crs)


def feature_collection(geometries, ids=None, properties=None, crs_name=None):
    """GeoJSON FeatureCollection dict; ``crs_name`` adds a legacy named CRS member."""
    properties = [{} for _ in geometries] if properties is None else properties
    features = []
    for i, (geom, props) in enumerate(zip(geometries, properties)):
        feature = {"type": "Feature", "geometry": mapping(geom), "properties": props}
        if ids is not None:
            feature["id"] = ids[i]
        features.append(feature)
    doc = {"type": "FeatureCollection", "features": features}
    if crs_name is not None:
        doc["crs"] = {"type": "name", "properties": {"name": crs_name}}
    return doc
