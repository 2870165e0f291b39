"""Coordinate transforms between geographic and Web Mercator space.

Markers and the view centre are stored in EPSG:3857 metres, the projection
the raster basemaps are tiled in.  The helpers below convert between that
plane, plain longitude/latitude and the normalised ``[0, 1]`` world space the
renderer works in.
"""

from __future__ import annotations

import math

EARTH_RADIUS: float = 6378137.0
HALF_WORLD: float = math.pi * EARTH_RADIUS
MERCATOR_LAT_BOUND: float = 85.05112878


def from_lonlat(lon: float, lat: float) -> tuple[float, float]:
    """Project *lon*/*lat* degrees into EPSG:3857 metres."""

    lat = max(min(float(lat), MERCATOR_LAT_BOUND), -MERCATOR_LAT_BOUND)
    x = math.radians(float(lon)) * EARTH_RADIUS
    y = math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0)) * EARTH_RADIUS
    return x, y


def to_lonlat(x: float, y: float) -> tuple[float, float]:
    """Invert :func:`from_lonlat`."""

    lon = math.degrees(x / EARTH_RADIUS)
    lat = math.degrees(2.0 * math.atan(math.exp(y / EARTH_RADIUS)) - math.pi / 2.0)
    return lon, lat


def to_world_fraction(x: float, y: float) -> tuple[float, float]:
    """Map EPSG:3857 metres onto the ``[0, 1]`` world square (origin top-left)."""

    return (x + HALF_WORLD) / (2.0 * HALF_WORLD), (HALF_WORLD - y) / (2.0 * HALF_WORLD)


def from_world_fraction(fx: float, fy: float) -> tuple[float, float]:
    """Invert :func:`to_world_fraction`."""

    return fx * 2.0 * HALF_WORLD - HALF_WORLD, HALF_WORLD - fy * 2.0 * HALF_WORLD


def resolution_for_zoom(zoom: float, tile_size: int) -> float:
    """Return the ground resolution in metres per pixel at *zoom*."""

    return (2.0 * HALF_WORLD) / (tile_size * (2.0 ** zoom))


def zoom_for_resolution(resolution: float, tile_size: int) -> float:
    """Return the fractional zoom level matching *resolution*."""

    return math.log2((2.0 * HALF_WORLD) / (tile_size * resolution))


__all__ = [
    "EARTH_RADIUS",
    "HALF_WORLD",
    "MERCATOR_LAT_BOUND",
    "from_lonlat",
    "from_world_fraction",
    "resolution_for_zoom",
    "to_lonlat",
    "to_world_fraction",
    "zoom_for_resolution",
]
