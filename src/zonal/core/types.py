"""Record types flowing through the zone-value aggregation pipeline.

Feature collections and point observations are fixed pydantic record types
with a typed attribute map. They are validated once, at construction (i.e.
at load time), and are immutable afterwards. Direct construction reports bad
input as pydantic ``ValidationError``; the loaders (``GeometryStore.load``,
``load_field``, ``GridField.from_xarray``) report it as ``FormatError``. Grid
values are stored as a read-only numpy array.

Grid geometry convention
------------------------
``origin`` is the (x, y) of the upper-left corner. Row 0 is the northern
(top) row; rows increase downwards. Cell ``(r, c)`` spans
``[x0 + c*dx, x0 + (c+1)*dx] x [y0 - (r+1)*dy, y0 - r*dy]``.
Flat sample index of a cell is ``r * cols + c``.
"""

import math
from typing import Dict, Literal, Optional, Tuple, Union

import numpy as np
import shapely
import xarray as xr
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    ValidationError,
    field_validator,
    model_validator,
)
from shapely.geometry.base import BaseGeometry

from zonal.contracts.failure import FormatError, OutOfBoundsError
from zonal.core.crs import crs_label, make_transformer, transform_xy

__all__ = ['Feature', 'GridField', 'PointObservation', 'PointField', 'ZoneStatistic', 'STATISTICS']


ZoneId = Union[StrictInt, str]
AttributeValue = Optional[Union[StrictBool, StrictInt, float, str]]
StatisticName = Literal["mean", "sum", "count", "min", "max", "std"]
STATISTICS = ("mean", "sum", "count", "min", "max", "std")


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra='forbid',
        arbitrary_types_allowed=True,
    )


# =============================================================================
# Vector records
# =============================================================================

class Feature(_Record):
    """One spatial feature: identity, geometry and a typed attribute map."""

    feature_id: ZoneId
    geometry: BaseGeometry
    attributes: Dict[str, AttributeValue] = Field(default_factory=dict)

    @field_validator("geometry")
    @classmethod
    def geometry_must_be_valid(cls, v):
        if v is None or v.is_empty:
            raise ValueError("geometry must be non-null and non-empty")
        if not shapely.is_valid(v):
            raise ValueError(f"invalid geometry: {shapely.is_valid_reason(v)}")
        return v


# =============================================================================
# Grid field
# =============================================================================

class GridField(_Record):
    """Scalar (or layered) field sampled on a regular, north-up grid."""

    values: np.ndarray
    origin: Tuple[float, float]
    cell_size: Tuple[float, float]
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)
    crs: str
    nodata: Optional[float] = None
    band_names: Optional[Tuple[str, ...]] = None
    name: str = "value"

    @field_validator("values", mode="before")
    @classmethod
    def coerce_values(cls, v):
        """Copy into a read-only float array."""
        arr = np.array(v, dtype=float, copy=True)
        arr.setflags(write=False)
        return arr

    @field_validator("cell_size")
    @classmethod
    def cell_size_positive(cls, v):
        if not (v[0] > 0 and v[1] > 0):
            raise ValueError(f"cell_size must be positive, got {v}")
        return v

    @field_validator("crs", mode="before")
    @classmethod
    def normalize_crs(cls, v):
        return crs_label(v)

    @model_validator(mode="after")
    def dimensions_match(self):
        if self.values.ndim not in (2, 3):
            raise ValueError(f"values must be 2-D or 3-D, got {self.values.ndim} dims")
        if self.values.shape[-2:] != (self.rows, self.cols):
            raise ValueError(
                f"values shape {self.values.shape[-2:]} does not match "
                f"declared rows/cols ({self.rows}, {self.cols})"
            )
        if self.band_names is not None and len(self.band_names) != self.n_bands:
            raise ValueError(f"{len(self.band_names)} band names for {self.n_bands} bands")
        return self

    @property
    def n_bands(self) -> int:
        return 1 if self.values.ndim == 2 else self.values.shape[0]

    @property
    def n_samples(self) -> int:
        return self.rows * self.cols

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(minx, miny, maxx, maxy)"""
        x0, y0 = self.origin
        dx, dy = self.cell_size
        return (x0, y0 - self.rows * dy, x0 + self.cols * dx, y0)

    def band(self, which: Union[int, str] = 0) -> np.ndarray:
        """2-D array of one band, by index or name."""
        if self.values.ndim == 2:
            if which not in (0, self.name):
                raise KeyError(f"single-band field has no band {which!r}")
            return self.values
        if isinstance(which, str):
            if self.band_names is None or which not in self.band_names:
                raise KeyError(f"no band named {which!r}")
            which = self.band_names.index(which)
        return self.values[which]

    def valid_mask(self, band: Union[int, str] = 0) -> np.ndarray:
        """True where the cell holds a real measurement."""
        data = self.band(band)
        mask = np.isfinite(data)
        if self.nodata is not None and not math.isnan(self.nodata):
            mask &= data != self.nodata
        return mask

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Flat x, y arrays of cell centers, in flat sample index order."""
        x0, y0 = self.origin
        dx, dy = self.cell_size
        xs = x0 + (np.arange(self.cols) + 0.5) * dx
        ys = y0 - (np.arange(self.rows) + 0.5) * dy
        xx, yy = np.meshgrid(xs, ys)
        return xx.ravel(), yy.ravel()

    def cell_boxes(self) -> np.ndarray:
        """Flat array of shapely boxes, one per cell, in flat sample index order."""
        x0, y0 = self.origin
        dx, dy = self.cell_size
        cc, rr = np.meshgrid(np.arange(self.cols), np.arange(self.rows))
        minx = (x0 + cc * dx).ravel()
        maxy = (y0 - rr * dy).ravel()
        return shapely.box(minx, maxy - dy, minx + dx, maxy)

    def index_of(self, x: float, y: float) -> Tuple[int, int]:
        """(row, col) of the cell containing (x, y).

        Points on the outer right/bottom edge belong to the last column/row.

        Raises
        ------
        OutOfBoundsError
            If (x, y) is outside the extent (or not finite).
        """
        minx, miny, maxx, maxy = self.bounds
        if not (minx <= x <= maxx and miny <= y <= maxy):
            raise OutOfBoundsError(x, y, self.bounds)
        dx, dy = self.cell_size
        col = min(int((x - minx) // dx), self.cols - 1)
        row = min(int((maxy - y) // dy), self.rows - 1)
        return row, col

    def sample_at(self, x: float, y: float, band: Union[int, str] = 0) -> Optional[float]:
        """Value at (x, y), or None when the cell is nodata.

        Raises
        ------
        OutOfBoundsError
            If (x, y) lies outside the field's extent. Distinct from nodata.
        """
        row, col = self.index_of(x, y)
        if not self.valid_mask(band)[row, col]:
            return None
        return float(self.band(band)[row, col])

    def flat_values(self, band: Union[int, str] = 0) -> Tuple[np.ndarray, np.ndarray]:
        """(values, valid) flat arrays in sample index order."""
        return self.band(band).ravel(), self.valid_mask(band).ravel()

    def normalized_difference(self, a: Union[int, str], b: Union[int, str],
                              name: str = "index") -> "GridField":
        """Band index (a - b) / (a + b), e.g. NDVI = (NIR - Red) / (NIR + Red).

        Cells where either band is nodata, or a + b == 0, become NaN (nodata).
        """
        band_a = self.band(a)
        band_b = self.band(b)
        valid = self.valid_mask(a) & self.valid_mask(b)
        denom = band_a + band_b
        valid &= denom != 0
        out = np.full(band_a.shape, np.nan)
        np.divide(band_a - band_b, denom, out=out, where=valid)
        return GridField(
            values=out,
            origin=self.origin,
            cell_size=self.cell_size,
            rows=self.rows,
            cols=self.cols,
            crs=self.crs,
            nodata=None,
            name=name,
        )

    def to_xarray(self) -> xr.DataArray:
        """DataArray with cell-center ``x``/``y`` coordinates and crs/nodata attrs."""
        xs = self.origin[0] + (np.arange(self.cols) + 0.5) * self.cell_size[0]
        ys = self.origin[1] - (np.arange(self.rows) + 0.5) * self.cell_size[1]
        coords = {"y": ys, "x": xs}
        dims = ("y", "x")
        if self.values.ndim == 3:
            dims = ("band", "y", "x")
            coords["band"] = list(self.band_names) if self.band_names else np.arange(self.n_bands)
        attrs = {"crs": self.crs, "cell_size": list(self.cell_size)}
        if self.nodata is not None:
            attrs["nodata"] = self.nodata
        return xr.DataArray(np.array(self.values), dims=dims, coords=coords, name=self.name, attrs=attrs)

    @classmethod
    def from_xarray(cls, da: xr.DataArray, crs=None, nodata: Optional[float] = None) -> "GridField":
        """Build a GridField from a DataArray with regular 1-D x/y coordinates.

        Coordinates are taken to be cell centers. Ascending ``y`` is flipped so
        the result is north-up. A single row or column has no spacing to read,
        so its cell size comes from ``attrs["cell_size"]`` (``[dx, dy]``, as
        written by ``to_xarray``). CRS falls back to ``attrs["crs"]`` or a CF
        ``crs_wkt``/``spatial_ref`` attribute; nodata falls back to
        ``attrs["nodata"]`` / ``_FillValue`` / ``missing_value``.

        Raises
        ------
        FormatError
            On missing coordinates, irregular spacing, or missing CRS.
        """
        x_name = _find_coord(da, ("x", "lon", "longitude", "easting"))
        y_name = _find_coord(da, ("y", "lat", "latitude", "northing"))
        if x_name is None or y_name is None:
            raise FormatError(f"Grid {da.name!r} has no recognisable x/y coordinates: {list(da.coords)}")

        extra_dims = [d for d in da.dims if d not in (x_name, y_name)]
        if len(extra_dims) > 1:
            raise FormatError(f"Grid {da.name!r} has too many dimensions: {da.dims}")
        da = da.transpose(*extra_dims, y_name, x_name)

        xs = np.asarray(da[x_name].values, dtype=float)
        ys = np.asarray(da[y_name].values, dtype=float)
        if len(xs) == 0 or len(ys) == 0:
            raise FormatError(f"Grid {da.name!r} has no cells")
        cell_size = da.attrs.get("cell_size")
        dx = _regular_step(xs, x_name) if len(xs) > 1 else _attr_step(cell_size, 0, da.name)
        dy = _regular_step(ys, y_name) if len(ys) > 1 else -_attr_step(cell_size, 1, da.name)

        values = np.asarray(da.values, dtype=float)
        if dy > 0:
            values = values[..., ::-1, :]
            ys = ys[::-1]
        if dx < 0:
            values = values[..., :, ::-1]
            xs = xs[::-1]
        dx, dy = abs(dx), abs(dy)

        if crs is None:
            crs = da.attrs.get("crs") or da.attrs.get("crs_wkt") or da.attrs.get("spatial_ref")
        if crs is None:
            raise FormatError(f"Grid {da.name!r} carries no CRS and none was supplied")
        if nodata is None:
            for key in ("nodata", "_FillValue", "missing_value"):
                if key in da.attrs:
                    nodata = float(da.attrs[key])
                    break
            else:
                fill = da.encoding.get("_FillValue")
                nodata = float(fill) if fill is not None else None

        band_names = None
        if extra_dims:
            band_names = tuple(str(b) for b in da[extra_dims[0]].values) if extra_dims[0] in da.coords else None

        try:
            return cls(
                values=values,
                origin=(float(xs[0] - dx / 2), float(ys[0] + dy / 2)),
                cell_size=(float(dx), float(dy)),
                rows=values.shape[-2],
                cols=values.shape[-1],
                crs=crs,
                nodata=nodata,
                band_names=band_names,
                name=str(da.name) if da.name is not None else "value",
            )
        except ValidationError as e:
            raise FormatError(f"Grid {da.name!r} failed validation: {e}") from e


def _find_coord(da: xr.DataArray, candidates) -> Optional[str]:
    for name in candidates:
        if name in da.coords and da[name].ndim == 1:
            return name
    return None


def _regular_step(coord: np.ndarray, name: str) -> float:
    steps = np.diff(coord)
    step = float(steps[0])
    if step == 0 or not np.allclose(steps, step, rtol=1e-6, atol=0):
        raise FormatError(f"Coordinate {name!r} is not regularly spaced")
    return step


def _attr_step(cell_size, axis: int, name) -> float:
    sizes = np.asarray(cell_size if cell_size is not None else [], dtype=float).ravel()
    if sizes.size != 2 or not sizes[axis] > 0:
        raise FormatError(
            f"Grid {name!r} has a single cell along an axis and no usable cell_size attribute"
        )
    return float(sizes[axis])


# =============================================================================
# Point observations
# =============================================================================

class PointObservation(_Record):
    """Discrete observation at a coordinate. ``None`` in ``values`` is nodata."""

    obs_id: ZoneId
    x: float
    y: float
    values: Dict[str, Optional[float]] = Field(default_factory=dict)

    @field_validator("x", "y")
    @classmethod
    def coordinate_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError(f"coordinate must be finite, got {v}")
        return v


class PointField(_Record):
    """Ordered point observations sharing one CRS."""

    observations: Tuple[PointObservation, ...]
    crs: str

    @field_validator("crs", mode="before")
    @classmethod
    def normalize_crs(cls, v):
        return crs_label(v)

    def __len__(self) -> int:
        return len(self.observations)

    @property
    def n_samples(self) -> int:
        return len(self.observations)

    @property
    def ids(self) -> list:
        return [o.obs_id for o in self.observations]

    def coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        xs = np.array([o.x for o in self.observations], dtype=float)
        ys = np.array([o.y for o in self.observations], dtype=float)
        return xs, ys

    def flat_values(self, name: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray]:
        """(values, valid) arrays for attribute ``name``.

        With ``name=None`` every observation contributes 1.0, so ``sum`` and
        ``count`` give point counts per zone (e.g. cases per district).
        """
        if name is None:
            vals = np.ones(len(self.observations))
        else:
            vals = np.array(
                [o.values.get(name) if o.values.get(name) is not None else np.nan
                 for o in self.observations],
                dtype=float,
            )
        return vals, np.isfinite(vals)

    def reproject(self, target_crs) -> "PointField":
        if crs_label(target_crs) == self.crs:
            return self
        xs, ys = self.coordinates()
        tx, ty = transform_xy(make_transformer(self.crs, target_crs), xs, ys)
        observations = tuple(
            o.model_copy(update={"x": float(x), "y": float(y)})
            for o, x, y in zip(self.observations, tx, ty)
        )
        return PointField(observations=observations, crs=target_crs)


# =============================================================================
# Output records
# =============================================================================

class ZoneStatistic(_Record):
    """One aggregated statistic for one zone.

    ``value`` is None exactly when no valid sample contributed (``count == 0``).
    That holds for every statistic, ``count`` included.
    """

    zone_id: ZoneId
    statistic: StatisticName
    value: Optional[float]
    count: int = Field(ge=0)
    nodata_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def absent_iff_empty(self):
        if (self.value is None) != (self.count == 0):
            raise ValueError(
                f"value must be absent exactly when count == 0 "
                f"(value={self.value}, count={self.count})"
            )
        return self

    @property
    def is_absent(self) -> bool:
        return self.value is None
