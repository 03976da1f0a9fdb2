"""`zonal` - zone-value aggregation of gridded fields and point observations.

Subpackages:
- core: Geometry store, field source, predicate engine, aggregator, result table
- io: GeoJSON, NetCDF and CSV readers, bounded-time loading
- pipeline: Orchestrator and zone processor
- schemas: Layered pydantic configuration
- contracts: Stage invariants and error types
"""

__version__ = "0.1.0"
