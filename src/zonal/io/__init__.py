"""File readers for zones (GeoJSON), grids (NetCDF) and point observations (CSV)."""

from zonal.io.vector import read_geojson
from zonal.io.raster import read_grid
from zonal.io.points import read_points, points_from_frame
from zonal.io.timeout import run_with_timeout

__all__ = ['read_geojson', 'read_grid', 'read_points', 'points_from_frame', 'run_with_timeout']
