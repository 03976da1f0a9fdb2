"""Core zone-value aggregation components.

Record types are imported first; the geometry store and field source
depend on them.
"""

from zonal.core.types import Feature, GridField, PointField, PointObservation, ZoneStatistic, STATISTICS
from zonal.core.geometry_store import GeometryStore
from zonal.core.field_source import load_field, sample_many
from zonal.core.predicate import Membership, SpatialPredicateEngine
from zonal.core.aggregator import Aggregator
from zonal.core.result_table import ResultTable

__all__ = [
    'Feature',
    'GridField',
    'PointField',
    'PointObservation',
    'ZoneStatistic',
    'STATISTICS',
    'GeometryStore',
    'load_field',
    'sample_many',
    'Membership',
    'SpatialPredicateEngine',
    'Aggregator',
    'ResultTable',
]
