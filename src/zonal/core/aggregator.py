"""Reduce field values over zone membership sets.

Sums go through ``math.fsum``, which is correctly rounded, so sum, mean
and std do not depend on the order in which members are visited or on how
zones are scheduled across workers. min and max are order-independent
already.
"""

import math
import logging
import threading
from typing import Iterable, List, Optional, Tuple, Union, TYPE_CHECKING

import numpy as np

from zonal.core.predicate import Membership
from zonal.core.types import STATISTICS, GridField, PointField, ZoneStatistic
from zonal.core.workers import map_zones

if TYPE_CHECKING:
    from zonal.schemas import InternalConfig

__all__ = ['Aggregator', 'reduce_values']

logger = logging.getLogger(__name__)


def reduce_values(values: np.ndarray, statistic: str) -> Optional[float]:
    """Reduce a 1-D array of valid values to one number.

    Returns None for an empty array. ``std`` is the population standard
    deviation.
    """
    n = len(values)
    if n == 0:
        return None
    if statistic == "count":
        return float(n)
    if statistic == "min":
        return float(np.min(values))
    if statistic == "max":
        return float(np.max(values))

    total = math.fsum(values.tolist())
    if statistic == "sum":
        return total
    mean = total / n
    if statistic == "mean":
        return mean
    if statistic == "std":
        return math.sqrt(math.fsum(((values - mean) ** 2).tolist()) / n)

    raise ValueError(f"Unknown statistic '{statistic}'. Expected one of {STATISTICS}")


class Aggregator:
    """Compute per-zone statistics from a membership and a field.

    Nodata samples are excluded and counted in ``nodata_count``. A zone with
    no valid samples gets an absent value (``None``), never 0 or NaN.

    Examples
    --------
    >>> aggregator = Aggregator(config)
    >>> stats = aggregator.reduce(membership, grid, "mean")
    >>> [(s.zone_id, s.value, s.count) for s in stats]
    [(1, 1.0, 1), (2, 2.5, 2), (3, None, 0)]
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.statistics = list(config.aggregator.statistics)
        self.value = config.aggregator.value
        self.max_workers = config.workers.max_workers

    def sample_values(self, samples, value: Optional[Union[int, str]] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Flat (values, valid) arrays in sample index order.

        ``value`` selects a grid band (index or name) or a point attribute.
        For point fields, ``None`` makes every observation count as 1.0.
        """
        if value is None:
            value = self.value
        if isinstance(samples, GridField):
            return samples.flat_values(0 if value is None else value)
        if isinstance(samples, PointField):
            if isinstance(value, int):
                raise ValueError(f"Point fields are addressed by attribute name, got band index {value}")
            return samples.flat_values(value)
        raise TypeError(f"Unsupported sample type: {type(samples).__name__}")

    def reduce(self, membership: Membership, samples, statistic: str,
               value: Optional[Union[int, str]] = None,
               cancel_event: Optional[threading.Event] = None) -> List[ZoneStatistic]:
        """One ZoneStatistic per zone, in membership (zone) order."""
        return self.reduce_many(membership, samples, [statistic], value, cancel_event)

    def reduce_many(self, membership: Membership, samples, statistics: Optional[Iterable[str]] = None,
                    value: Optional[Union[int, str]] = None,
                    cancel_event: Optional[threading.Event] = None) -> List[ZoneStatistic]:
        """ZoneStatistics for several statistics, grouped by zone.

        Output order is zone order, then statistic order within each zone.
        """
        statistics = list(self.statistics if statistics is None else statistics)
        unknown = [s for s in statistics if s not in STATISTICS]
        if unknown:
            raise ValueError(f"Unknown statistic(s) {unknown}. Expected one of {STATISTICS}")

        vals, valid = self.sample_values(samples, value)
        if len(vals) != membership.n_samples:
            raise ValueError(
                f"Membership was computed for {membership.n_samples} samples, field has {len(vals)}"
            )

        def _unit(item):
            zone_id, members = item
            member_valid = valid[members]
            good = vals[members][member_valid]
            nodata_count = int(len(members) - member_valid.sum())
            return [
                ZoneStatistic(
                    zone_id=zone_id,
                    statistic=stat,
                    value=reduce_values(good, stat),
                    count=len(good),
                    nodata_count=nodata_count,
                )
                for stat in statistics
            ]

        per_zone = map_zones(_unit, list(membership.items()), self.max_workers, cancel_event)
        results = [s for zone_stats in per_zone for s in zone_stats]

        absent = sum(1 for zone_stats in per_zone if zone_stats and zone_stats[0].is_absent)
        logger.debug("Reduced %d zones x %d statistics (%d zones without valid samples)",
                     len(per_zone), len(statistics), absent)
        return results
