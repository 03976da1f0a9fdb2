"""Spatial membership of field samples in zones.

For each zone, the engine finds the samples (grid cells or point
observations) whose location satisfies the configured predicate:

- ``center``: the cell center / point lies in the zone, boundary included.
  Point zones over a grid pick the cell containing each point.
- ``overlap``: the cell box shares area with a polygon zone (touching edges
  do not count), or intersects a line/point zone. For point samples this is
  the same as ``center``.
- ``within_distance``: the sample lies within ``distance`` CRS units of the
  zone geometry.

Zones and samples must already share a CRS; the engine never reprojects.
Samples claimed by several zones are given to exactly one of them by the
tie-break rule, so membership sets never overlap.
"""

import logging
import threading
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TYPE_CHECKING

import numpy as np
import shapely

from zonal.contracts.failure import CRSError, FailurePolicy, OutOfBoundsError
from zonal.core.crs import crs_equal
from zonal.core.geometry_store import GeometryStore, geometry_family
from zonal.core.types import GridField, PointField
from zonal.core.workers import map_zones

if TYPE_CHECKING:
    from zonal.schemas import InternalConfig

__all__ = ['SpatialPredicateEngine', 'Membership']

logger = logging.getLogger(__name__)

_EMPTY = np.empty(0, dtype=np.int64)


class Membership:
    """Per-zone sample index sets, in zone order.

    Indices refer to the sample set: flat cell index ``row * cols + col``
    for grids, observation position for point fields.
    """

    def __init__(self, zone_ids: Sequence, members: Sequence[np.ndarray], n_samples: int, mode: str):
        self.zone_ids = list(zone_ids)
        self.n_samples = int(n_samples)
        self.mode = mode
        frozen = []
        for m in members:
            m = np.asarray(m, dtype=np.int64)
            m.setflags(write=False)
            frozen.append(m)
        self._members = tuple(frozen)
        self._position = {zid: i for i, zid in enumerate(self.zone_ids)}

    def __len__(self) -> int:
        return len(self.zone_ids)

    def __iter__(self) -> Iterator:
        return iter(self.zone_ids)

    def __getitem__(self, zone_id) -> np.ndarray:
        return self._members[self._position[zone_id]]

    def __repr__(self) -> str:
        return f"Membership(zones={len(self)}, samples={self.n_samples}, assigned={len(self.assigned())}, mode={self.mode})"

    def items(self):
        return zip(self.zone_ids, self._members)

    def sizes(self) -> Dict:
        return {zid: len(m) for zid, m in self.items()}

    def assigned(self) -> np.ndarray:
        """Sorted indices of samples that belong to some zone."""
        if not self._members:
            return _EMPTY
        return np.sort(np.concatenate(self._members))

    def unassigned(self) -> np.ndarray:
        """Sorted indices of samples that fall in no zone."""
        return np.setdiff1d(np.arange(self.n_samples), self.assigned(), assume_unique=True)


def _id_key(zone_id):
    # ints sort before strings; each group in natural order
    return (0, zone_id, "") if isinstance(zone_id, int) else (1, 0, str(zone_id))


def _window(xs, ys, bounds, pad_x=0.0, pad_y=0.0) -> np.ndarray:
    """Indices of points inside a (padded) bounding box."""
    minx, miny, maxx, maxy = bounds
    inside = (
        (xs >= minx - pad_x) & (xs <= maxx + pad_x)
        & (ys >= miny - pad_y) & (ys <= maxy + pad_y)
    )
    return np.flatnonzero(inside)


class SpatialPredicateEngine:
    """Compute zone membership of grid cells or point observations.

    Configuration is read from ``config.predicate`` (mode, tie_break,
    distance, out_of_bounds) and ``config.workers.max_workers``.

    Examples
    --------
    >>> engine = SpatialPredicateEngine(config)
    >>> membership = engine.membership(zones, grid)
    >>> membership["district-7"]      # flat cell indices
    array([12, 13, 22, 23])
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        self.mode = config.predicate.mode
        self.tie_break = config.predicate.tie_break
        self.distance = config.predicate.distance
        self.out_of_bounds = FailurePolicy(config.predicate.out_of_bounds)
        self.max_workers = config.workers.max_workers

    def membership(self, zones: GeometryStore, samples, cancel_event: Optional[threading.Event] = None) -> Membership:
        """Membership sets for every zone, in zone order.

        Raises
        ------
        CRSError
            If zones and samples do not share a CRS. Reproject first.
        OutOfBoundsError
            Only with ``out_of_bounds="fail_fast"``, for point zones outside a grid.
        PipelineCancelled
            If ``cancel_event`` is set while zones are being processed.
        """
        if not crs_equal(zones.crs, samples.crs):
            raise CRSError(
                f"Zones are in {zones.crs} but samples are in {samples.crs}; "
                f"reproject one of them before computing membership",
                source_crs=zones.crs,
                target_crs=samples.crs,
            )

        n_samples = samples.n_samples
        if len(zones) == 0:
            return Membership([], [], n_samples, self.mode)

        finder = self._finder(samples)
        ids = zones.ids
        geoms = zones.geometries

        def _unit(pos):
            return np.unique(finder(ids[pos], geoms[pos]))

        raw = map_zones(_unit, range(len(zones)), self.max_workers, cancel_event)
        members = self._resolve_ties(ids, raw, n_samples)

        logger.debug("Membership (%s): %d zones, %d/%d samples assigned",
                     self.mode, len(zones), sum(len(m) for m in members), n_samples)
        return Membership(ids, members, n_samples, self.mode)

    # ------------------------------------------------------------------
    # Candidate finders
    # ------------------------------------------------------------------

    def _finder(self, samples) -> Callable:
        if isinstance(samples, GridField):
            xs, ys = samples.cell_centers()
        elif isinstance(samples, PointField):
            xs, ys = samples.coordinates()
        else:
            raise TypeError(f"Unsupported sample type: {type(samples).__name__}")

        if self.mode == "within_distance":
            points = shapely.points(xs, ys)
            d = self.distance

            def _within(zone_id, geom):
                cand = _window(xs, ys, geom.bounds, d, d)
                return cand[shapely.dwithin(geom, points[cand], d)]
            return _within

        if isinstance(samples, GridField):
            if self.mode == "overlap":
                return self._grid_overlap_finder(samples, xs, ys)
            return self._grid_center_finder(samples, xs, ys)

        def _contains(zone_id, geom):
            cand = _window(xs, ys, geom.bounds)
            return cand[shapely.intersects_xy(geom, xs[cand], ys[cand])]
        return _contains

    def _grid_center_finder(self, grid: GridField, xs, ys) -> Callable:
        def _center(zone_id, geom):
            if geometry_family(geom) == "point":
                return self._cells_under_points(grid, zone_id, geom)
            cand = _window(xs, ys, geom.bounds)
            return cand[shapely.intersects_xy(geom, xs[cand], ys[cand])]
        return _center

    def _grid_overlap_finder(self, grid: GridField, xs, ys) -> Callable:
        boxes = grid.cell_boxes()
        half_x, half_y = grid.cell_size[0] / 2, grid.cell_size[1] / 2

        def _overlap(zone_id, geom):
            cand = _window(xs, ys, geom.bounds, half_x, half_y)
            hit = shapely.intersects(geom, boxes[cand])
            if geometry_family(geom) == "polygon":
                hit &= ~shapely.touches(geom, boxes[cand])
            return cand[hit]
        return _overlap

    def _cells_under_points(self, grid: GridField, zone_id, geom) -> np.ndarray:
        cells = []
        for x, y in shapely.get_coordinates(geom):
            try:
                row, col = grid.index_of(x, y)
            except OutOfBoundsError:
                if self.out_of_bounds is FailurePolicy.FAIL_FAST:
                    raise
                logger.warning("Zone %r at (%.6g, %.6g) is outside the field extent; treated as nodata",
                               zone_id, x, y)
                continue
            cells.append(row * grid.cols + col)
        return np.asarray(cells, dtype=np.int64)

    # ------------------------------------------------------------------
    # Tie-break
    # ------------------------------------------------------------------

    def _priority(self, zone_ids: List) -> List[int]:
        positions = list(range(len(zone_ids)))
        if self.tie_break == "first":
            return positions
        return sorted(positions, key=lambda i: _id_key(zone_ids[i]),
                      reverse=(self.tie_break == "highest_id"))

    def _resolve_ties(self, zone_ids: List, raw: List[np.ndarray], n_samples: int) -> List[np.ndarray]:
        """Give every multiply-claimed sample to the highest-priority zone."""
        owner = np.full(n_samples, -1, dtype=np.int64)
        for pos in self._priority(zone_ids):
            cand = raw[pos]
            owner[cand[owner[cand] == -1]] = pos

        members = [cand[owner[cand] == pos] for pos, cand in enumerate(raw)]
        contested = sum(len(c) for c in raw) - sum(len(m) for m in members)
        if contested:
            logger.debug("Tie-break '%s' resolved %d shared sample claims", self.tie_break, contested)
        return members
