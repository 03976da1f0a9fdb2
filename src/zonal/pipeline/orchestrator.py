"""Pipeline orchestration.

Loads zones and field with bounded time, brings the zones into the field
CRS, runs the zone processor, and exports the result table. The run can
be cancelled from another thread between zone units.
"""

import time
import logging
import threading
from pathlib import Path
from typing import Optional, Union

from zonal.contracts.failure import FormatError
from zonal.core.field_source import FieldLike, load_field
from zonal.core.geometry_store import GeometryStore
from zonal.core.workers import check_cancelled
from zonal.core.result_table import ResultTable
from zonal.pipeline.processor import ZoneProcessor
from zonal.schemas import InternalConfig

__all__ = ['ZonalPipeline']

logger = logging.getLogger(__name__)


class ZonalPipeline:
    """Runs the zone-value aggregation pipeline end to end.

    This is the main entry point for running ``zonal``.

    **Pipeline:**

    1. **Load zones**: GeoJSON into a ``GeometryStore`` (bounded by
       ``reader.load_timeout_sec``).

    2. **Load field**: NetCDF grid or CSV points (same bound).

    3. **Align CRS**: zones are reprojected to the field CRS. Grids are never
       resampled, so cell values stay exactly as read.

    4. **Process**: membership, reduction and join (see ``ZoneProcessor``).
       Results are joined onto the zones in their original CRS.

    5. **Export**: parquet or CSV when ``output.path`` is set.

    **Cancellation:**

    ``cancel()`` may be called from any thread. Zone units that have not
    started yet are skipped and ``run()`` raises ``PipelineCancelled``.
    Nothing is written in that case.

    **Logging:**

    ``start()`` configures the root logger (console, plus
    ``logging.log_file`` when set) at ``logging.level``. ``run()`` leaves
    logging configuration to the caller.

    Example usage::

        from zonal.schemas import resolve_config
        from zonal.pipeline import ZonalPipeline

        config = resolve_config(user_cfg={"ZONES": "districts.geojson",
                                          "FIELD": "ndvi.nc",
                                          "STATISTICS": ["mean", "std"]})
        table = ZonalPipeline(config).start()
        ids, means = table.values("mean")
    """

    def __init__(self, config: InternalConfig):
        self.config = config
        self.processor = ZoneProcessor(config)
        self._cancel_event = threading.Event()
        self._start_time = None

    def _setup_logging(self):
        """Configure the root logger from ``config.logging``."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        log_file = self.config.logging.log_file
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_path)
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", self.config.logging.level, log_file)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_zones(self, source=None) -> GeometryStore:
        """Load zones from ``source`` or ``config.zones``."""
        source = self.config.zones if source is None else source
        if source is None:
            raise FormatError("No zones given: pass a source or set 'zones' in the configuration")
        if isinstance(source, GeometryStore):
            return source
        reader = self.config.reader
        return GeometryStore.load(
            source,
            crs=reader.zone_crs,
            id_field=reader.zone_id_field,
            timeout=reader.load_timeout_sec,
        )

    def load_field(self, source=None) -> FieldLike:
        """Load the field from ``source`` or ``config.field``."""
        source = self.config.field if source is None else source
        if source is None:
            raise FormatError("No field given: pass a source or set 'field' in the configuration")
        reader = self.config.reader
        value = self.config.aggregator.value
        return load_field(
            source,
            crs=reader.field_crs,
            variable=reader.field_variable,
            nodata=reader.nodata,
            x_col=reader.point_x_col,
            y_col=reader.point_y_col,
            id_col=reader.point_id_col,
            value_cols=[value] if isinstance(value, str) else None,
            timeout=reader.load_timeout_sec,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, zones=None, field=None) -> ResultTable:
        """Configure logging, run the pipeline, export, and log a summary."""
        self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting zonal aggregation pipeline")
        logger.info("=" * 60)

        try:
            table = self.run(zones, field)
            self.export(table)
            return table
        finally:
            elapsed = time.time() - self._start_time if self._start_time else 0
            logger.info("=" * 60)
            logger.info("Pipeline finished. Runtime: %.1f seconds", elapsed)
            logger.info("=" * 60)

    def run(self, zones=None, field=None) -> ResultTable:
        """Load inputs (unless given as objects), align CRS and process.

        Parameters
        ----------
        zones : path, GeoJSON text/mapping or GeometryStore, optional
            Defaults to ``config.zones``.
        field : path, DataArray, DataFrame, GridField or PointField, optional
            Defaults to ``config.field``.

        Raises
        ------
        FormatError, CRSError, LoadTimeoutError
            Input problems; the run is aborted.
        PipelineCancelled
            ``cancel()`` was called during processing.
        """
        self._start_time = time.time()
        check_cancelled(self._cancel_event)

        store = self.load_zones(zones)
        samples = self.load_field(field)
        logger.info("Inputs: %d zones (%s, %s); field %s with %d samples",
                    len(store), store.geometry_type, store.crs,
                    type(samples).__name__, samples.n_samples)

        aligned = store.reproject(samples.crs)
        return self.processor.process(aligned, samples, output_zones=store,
                                      cancel_event=self._cancel_event)

    def cancel(self):
        """Request cancellation. Safe from any thread; the pipeline stays cancelled."""
        logger.info("Cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def export(self, table: ResultTable, path: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """Write ``table`` to ``path`` or ``config.output.path``; no-op when neither is set."""
        output = self.config.output
        path = output.path if path is None else path
        if path is None:
            logger.info("No output path configured; result kept in memory")
            return None
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return table.write(path, fmt=output.format, compression=output.compression)
