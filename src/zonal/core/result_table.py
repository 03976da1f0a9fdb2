"""Result table: zone statistics joined back onto zone geometries.

One row per zone of the geometry store, in store order. Missing values are
``pd.NA`` in nullable columns, which keeps "no data for this zone" distinct
from a computed NaN. Table output is parquet (via pyarrow, geometry as WKB)
or CSV (geometry as WKT).
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
import shapely

from zonal.contracts.base import require
from zonal.contracts.failure import FormatError
from zonal.core.geometry_store import GeometryStore
from zonal.core.types import STATISTICS, ZoneStatistic

__all__ = ['ResultTable']

logger = logging.getLogger(__name__)

RESERVED_COLUMNS = ("zone_id", "count", "nodata_count", "geometry")


class ResultTable:
    """Zone-by-statistic table with zone attributes and geometry.

    Columns, in order: ``zone_id``, ``count``, ``nodata_count``, one
    ``Float64`` column per statistic, the zone attributes, ``geometry``.
    The ``count`` statistic has no column of its own: it is the integer
    ``count`` column, which reads 0 for a zone without valid samples.

    Build it with :meth:`join`.
    """

    def __init__(self, frame: pd.DataFrame, statistics: List[str], crs: str):
        self._frame = frame
        self.statistics = list(statistics)
        self.crs = crs

    @classmethod
    def join(cls, zone_stats: Iterable[ZoneStatistic], store: GeometryStore,
             statistics: Optional[Iterable[str]] = None) -> "ResultTable":
        """Join zone statistics onto the geometry store.

        Every store zone gets a row. Zones with no statistic at all get
        ``pd.NA`` everywhere, including ``count``. ``statistics`` names
        columns that must exist even when no record carries them (an empty
        store, for one).

        Raises
        ------
        ContractViolation
            If a (zone, statistic) pair appears twice, a statistic names a
            zone that is not in the store, or the same zone reports
            different counts for different statistics.
        """
        zone_stats = list(zone_stats)
        known = set(store.ids)

        statistics: List[str] = list(dict.fromkeys(statistics or ()))
        cells: Dict[Tuple, Optional[float]] = {}
        counts: Dict = {}
        for s in zone_stats:
            require(s.zone_id in known, f"Statistic for unknown zone id {s.zone_id!r}")
            key = (s.zone_id, s.statistic)
            require(key not in cells, f"Duplicate statistic '{s.statistic}' for zone {s.zone_id!r}")
            cells[key] = s.value
            if s.statistic not in statistics:
                statistics.append(s.statistic)
            prev = counts.setdefault(s.zone_id, (s.count, s.nodata_count))
            require(prev == (s.count, s.nodata_count),
                    f"Inconsistent counts for zone {s.zone_id!r}: {prev} vs {(s.count, s.nodata_count)}")
        statistics.sort(key=STATISTICS.index)

        ids = store.ids
        data = {
            "zone_id": pd.Series(ids, dtype=_id_dtype(ids)),
            "count": pd.array([counts[z][0] if z in counts else pd.NA for z in ids], dtype="Int64"),
            "nodata_count": pd.array([counts[z][1] if z in counts else pd.NA for z in ids], dtype="Int64"),
        }
        for stat in statistics:
            if stat == "count":
                continue  # carried by the count column
            data[stat] = pd.array([_na(cells.get((z, stat))) for z in ids], dtype="Float64")

        names = _attribute_names(store)
        taken = set(data) | set(RESERVED_COLUMNS) | set(names)
        for name in names:
            column = name
            if name in data or name in RESERVED_COLUMNS:
                column = f"attr_{name}"
                while column in taken:
                    column = f"attr_{column}"
                taken.add(column)
            data[column] = [f.attributes.get(name) for f in store]

        data["geometry"] = store.geometries
        frame = pd.DataFrame(data)

        logger.info("Result table: %d zones x %s", len(frame), statistics)
        return cls(frame, statistics, store.crs)

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"ResultTable(zones={len(self)}, statistics={self.statistics}, crs={self.crs})"

    @property
    def zone_ids(self) -> list:
        return self._frame["zone_id"].tolist()

    def values(self, statistic: str, drop_absent: bool = True) -> Tuple[list, np.ndarray]:
        """(zone_ids, values) for one statistic, ready for a statistical test.

        With ``drop_absent=False`` absent values come back as NaN so the
        arrays stay aligned with every zone.
        """
        if statistic not in self.statistics:
            raise KeyError(f"Statistic '{statistic}' not in table; available: {self.statistics}")
        column = self._frame[statistic]
        ids = self._frame["zone_id"]
        if drop_absent:
            present = column.notna()
            column = column[present]
            ids = ids[present]
        return ids.tolist(), column.to_numpy(dtype=float, na_value=np.nan)

    def to_frame(self) -> pd.DataFrame:
        """Copy of the underlying DataFrame (geometry column holds shapely objects)."""
        return self._frame.copy()

    def to_parquet(self, path: Union[str, Path], compression: str = "snappy") -> Path:
        """Write parquet with geometry as WKB and the CRS in file metadata.

        Columns mixing value kinds (int and str zone ids, an attribute that
        is a number in one zone and text in another) are written as strings
        and listed under the ``zonal:string_columns`` metadata key.

        Raises
        ------
        FormatError
            If pyarrow still cannot convert a column.
        """
        path = Path(path)
        frame = self._frame.copy()
        frame["geometry"] = shapely.to_wkb(frame["geometry"].to_numpy())
        mixed = [c for c in frame.columns if c != "geometry" and _is_mixed(frame[c])]
        for column in mixed:
            frame[column] = frame[column].map(lambda v: None if _is_missing(v) else str(v))
        if mixed:
            logger.info("Writing mixed-type columns %s as strings", mixed)
        try:
            table = pa.Table.from_pandas(frame, preserve_index=False)
        except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
            raise FormatError(f"Cannot write result table to parquet: {e}") from e
        metadata = dict(table.schema.metadata or {})
        metadata[b"zonal:crs"] = self.crs.encode()
        metadata[b"zonal:geometry_encoding"] = b"WKB"
        metadata[b"zonal:string_columns"] = ",".join(mixed).encode()
        table = table.replace_schema_metadata(metadata)
        pq.write_table(table, path, compression=None if compression == "none" else compression)
        logger.info("Wrote %d rows to %s", len(frame), path)
        return path

    def to_csv(self, path: Union[str, Path]) -> Path:
        """Write CSV with geometry as WKT; absent values are empty cells."""
        path = Path(path)
        frame = self._frame.copy()
        frame["geometry"] = shapely.to_wkt(frame["geometry"].to_numpy())
        frame.to_csv(path, index=False)
        logger.info("Wrote %d rows to %s", len(frame), path)
        return path

    def write(self, path: Union[str, Path], fmt: str = "parquet", compression: str = "snappy") -> Path:
        if fmt == "csv":
            return self.to_csv(path)
        return self.to_parquet(path, compression=compression)


def _na(value: Optional[float]):
    return pd.NA if value is None else value


def _id_dtype(ids: list) -> str:
    return "int64" if ids and all(isinstance(z, int) for z in ids) else "object"


def _attribute_names(store: GeometryStore) -> List[str]:
    names: List[str] = []
    for f in store:
        for name in f.attributes:
            if name not in names:
                names.append(name)
    return names


def _is_missing(value) -> bool:
    return value is None or value is pd.NA or (isinstance(value, float) and np.isnan(value))


def _value_kind(value) -> str:
    if isinstance(value, (bool, np.bool_)):
        return "bool"
    if isinstance(value, (int, float, np.integer, np.floating)):
        return "number"
    return type(value).__name__


def _is_mixed(column: pd.Series) -> bool:
    if column.dtype != object:
        return False
    kinds = {_value_kind(v) for v in column if not _is_missing(v)}
    return len(kinds) > 1
