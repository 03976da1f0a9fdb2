"""Pipeline modules.

- orchestrator: Load, align CRS, process, export
- processor: Membership, reduction and join with stage contracts
"""

from zonal.pipeline.orchestrator import ZonalPipeline
from zonal.pipeline.processor import ZoneProcessor

__all__ = [
    "ZonalPipeline",
    "ZoneProcessor",
]
