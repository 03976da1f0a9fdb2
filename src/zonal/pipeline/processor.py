"""Zone processing: membership, reduction, join.

Takes zones and a field that already share a CRS and runs the three
computational stages with contract checks at every boundary.
"""

import logging
import threading
import time
from typing import List, Optional, TYPE_CHECKING

from zonal.core.aggregator import Aggregator
from zonal.core.geometry_store import GeometryStore
from zonal.core.predicate import Membership, SpatialPredicateEngine
from zonal.core.result_table import ResultTable
from zonal.core.types import ZoneStatistic
from zonal.contracts import (
    assert_field_ready,
    assert_membership,
    assert_result_table,
    assert_zones_ready,
)

if TYPE_CHECKING:
    from zonal.schemas import InternalConfig

__all__ = ['ZoneProcessor']

logger = logging.getLogger(__name__)


class ZoneProcessor:
    """Runs zones and a field through the scientific stages.

    **Stages:**

    1. **Membership**: the predicate engine assigns samples (cells or points)
       to zones; shared samples are resolved by the tie-break rule.

    2. **Reduction**: the aggregator computes every configured statistic for
       every zone, excluding nodata samples.

    3. **Join**: statistics are joined back onto a geometry store, one row per
       zone, zone order preserved.

    Each stage is followed by its contract. A ``ContractViolation`` here
    means a bug in the stage, not bad input.

    Example usage (typically called by the orchestrator)::

        processor = ZoneProcessor(config)
        table = processor.process(zones_in_field_crs, field, output_zones=zones)
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.engine = SpatialPredicateEngine(config)
        self.aggregator = Aggregator(config)
        self.last_membership: Optional[Membership] = None

    def membership(self, zones: GeometryStore, field,
                   cancel_event: Optional[threading.Event] = None) -> Membership:
        assert_field_ready(field)
        assert_zones_ready(zones)

        membership = self.engine.membership(zones, field, cancel_event=cancel_event)
        assert_membership(membership, zones.ids, field.n_samples)
        self.last_membership = membership

        unassigned = len(membership.unassigned())
        logger.info("Membership: %d zones, %d/%d samples assigned (%s, tie-break %s)",
                    len(membership), field.n_samples - unassigned, field.n_samples,
                    self.engine.mode, self.engine.tie_break)
        return membership

    def reduce(self, membership: Membership, field,
               cancel_event: Optional[threading.Event] = None) -> List[ZoneStatistic]:
        stats = self.aggregator.reduce_many(membership, field, cancel_event=cancel_event)
        self._log_zone_statistics(stats)
        return stats

    def process(self, zones: GeometryStore, field, output_zones: Optional[GeometryStore] = None,
                cancel_event: Optional[threading.Event] = None) -> ResultTable:
        """Run all stages and return the result table.

        Parameters
        ----------
        zones : GeometryStore
            Zones in the field CRS.
        field : GridField or PointField
            Field to aggregate.
        output_zones : GeometryStore, optional
            Store to join results onto (e.g. the zones in their original
            CRS). Must hold the same ids in the same order as ``zones``.
            Defaults to ``zones``.
        cancel_event : threading.Event, optional
            Set to stop between zone units; raises ``PipelineCancelled``.
        """
        start = time.time()
        output_zones = zones if output_zones is None else output_zones

        membership = self.membership(zones, field, cancel_event)
        stats = self.reduce(membership, field, cancel_event)

        table = ResultTable.join(stats, output_zones, statistics=self.aggregator.statistics)
        assert_result_table(table, output_zones.ids, self.aggregator.statistics)

        logger.info("Processed %d zones in %.2f s", len(table), time.time() - start)
        return table

    def _log_zone_statistics(self, stats: List[ZoneStatistic]):
        """Log a one-line summary per statistic; per-zone values at DEBUG."""
        by_stat = {}
        for s in stats:
            by_stat.setdefault(s.statistic, []).append(s)

        for stat, items in by_stat.items():
            present = [s.value for s in items if not s.is_absent]
            if present:
                logger.info("  %s: %d zones with data, %d absent, range [%.4g, %.4g]",
                            stat, len(present), len(items) - len(present), min(present), max(present))
            else:
                logger.info("  %s: no zone has valid samples", stat)

        if logger.isEnabledFor(logging.DEBUG):
            for s in stats:
                logger.debug("  zone %r %s=%s (count=%d, nodata=%d)",
                             s.zone_id, s.statistic, s.value, s.count, s.nodata_count)
