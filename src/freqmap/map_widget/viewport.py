"""Viewport computation and tile grid helpers for the map view."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from ..config import DEFAULT_MAX_ZOOM, TILE_SIZE
from ..projection import HALF_WORLD, resolution_for_zoom, zoom_for_resolution

TileCoord = tuple[int, int, int]


@dataclass(frozen=True)
class Extent:
    """Axis-aligned bounding box in EPSG:3857 metres."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class ViewState:
    """Describe the camera parameters used for the current paint pass."""

    center_x: float
    center_y: float
    zoom: float
    fetch_zoom: int
    width: int
    height: int
    view_top_left_x: float
    view_top_left_y: float
    scaled_tile_size: float
    tiles_across: int
    tile_size: int = TILE_SIZE

    # ------------------------------------------------------------------
    @property
    def resolution(self) -> float:
        """Metres per screen pixel."""

        return resolution_for_zoom(self.zoom, self.tile_size)

    # ------------------------------------------------------------------
    @property
    def world_size(self) -> float:
        """Width of the whole world in screen pixels at the current zoom."""

        return self.tile_size * (2.0 ** self.zoom)

    # ------------------------------------------------------------------
    def extent(self) -> Extent:
        """Return the map area currently covered by the viewport."""

        half_w = self.width / 2.0 * self.resolution
        half_h = self.height / 2.0 * self.resolution
        return Extent(
            self.center_x - half_w,
            self.center_y - half_h,
            self.center_x + half_w,
            self.center_y + half_h,
        )

    # ------------------------------------------------------------------
    def coordinate_to_pixel(self, x: float, y: float) -> tuple[float, float]:
        """Project EPSG:3857 metres into widget-relative pixels."""

        resolution = self.resolution
        return (
            self.width / 2.0 + (x - self.center_x) / resolution,
            self.height / 2.0 - (y - self.center_y) / resolution,
        )

    # ------------------------------------------------------------------
    def pixel_to_coordinate(self, px: float, py: float) -> tuple[float, float]:
        """Invert :meth:`coordinate_to_pixel`."""

        resolution = self.resolution
        return (
            self.center_x + (px - self.width / 2.0) * resolution,
            self.center_y - (py - self.height / 2.0) * resolution,
        )


def fetch_zoom_for(zoom: float, max_zoom: int) -> int:
    """Return the integer tile level drawn for the fractional *zoom*."""

    # A small epsilon keeps float round-trips through resolutions from
    # dropping a whole level (e.g. 2.9999999 for zoom 3).
    return min(max_zoom, max(0, math.floor(zoom + 1e-9)))


def compute_view_state(
    center_x: float,
    center_y: float,
    zoom: float,
    width: int,
    height: int,
    tile_size: int = TILE_SIZE,
    max_tile_zoom: int = DEFAULT_MAX_ZOOM,
) -> ViewState:
    """Translate widget geometry into the parameters used during rendering."""

    world_size = tile_size * (2 ** zoom)
    center_px = (center_x + HALF_WORLD) / (2.0 * HALF_WORLD) * world_size
    center_py = (HALF_WORLD - center_y) / (2.0 * HALF_WORLD) * world_size
    view_top_left_x = center_px - width / 2.0
    view_top_left_y = center_py - height / 2.0

    # Beyond the source's deepest level the renderer keeps drawing the last
    # level and magnifies it by ``scale_factor``.
    fetch_zoom = fetch_zoom_for(zoom, max_tile_zoom)
    tiles_across = 1 << fetch_zoom
    scale_factor = 2 ** (zoom - fetch_zoom)
    scaled_tile_size = tile_size * scale_factor

    return ViewState(
        center_x=center_x,
        center_y=center_y,
        zoom=zoom,
        fetch_zoom=fetch_zoom,
        width=width,
        height=height,
        view_top_left_x=view_top_left_x,
        view_top_left_y=view_top_left_y,
        scaled_tile_size=scaled_tile_size,
        tiles_across=tiles_across,
        tile_size=tile_size,
    )


class TileGrid:
    """XYZ tile pyramid covering the Web Mercator world square."""

    def __init__(self, *, tile_size: int = TILE_SIZE, max_zoom: int = DEFAULT_MAX_ZOOM) -> None:
        self.tile_size = tile_size
        self.max_zoom = max_zoom

    # ------------------------------------------------------------------
    def z_for_resolution(self, resolution: float) -> int:
        """Return the tile level matching *resolution*, clamped to the grid."""

        return fetch_zoom_for(zoom_for_resolution(resolution, self.tile_size), self.max_zoom)

    # ------------------------------------------------------------------
    def tile_range(self, extent: Extent, z: int) -> tuple[int, int, int, int]:
        """Return inclusive ``(min_x, min_y, max_x, max_y)`` tile indices for *extent*."""

        n = 1 << z
        span = (2.0 * HALF_WORLD) / n
        # Extents touching a tile edge exactly do not pull in the neighbour.
        eps = 1e-9
        min_tx = math.floor((extent.min_x + HALF_WORLD) / span + eps)
        max_tx = math.floor((extent.max_x + HALF_WORLD) / span - eps)
        min_ty = math.floor((HALF_WORLD - extent.max_y) / span + eps)
        max_ty = math.floor((HALF_WORLD - extent.min_y) / span - eps)
        return (
            max(0, min_tx),
            max(0, min_ty),
            min(n - 1, max_tx),
            min(n - 1, max_ty),
        )

    # ------------------------------------------------------------------
    def for_each_tile_coord(
        self,
        extent: Extent,
        resolution: float,
        callback: Callable[[TileCoord], None],
    ) -> int:
        """Invoke *callback* for every ``(z, x, y)`` covering *extent*; return the count."""

        z = self.z_for_resolution(resolution)
        min_tx, min_ty, max_tx, max_ty = self.tile_range(extent, z)
        count = 0
        for tile_y in range(min_ty, max_ty + 1):
            for tile_x in range(min_tx, max_tx + 1):
                callback((z, tile_x, tile_y))
                count += 1
        return count


__all__ = [
    "Extent",
    "TileCoord",
    "TileGrid",
    "ViewState",
    "compute_view_state",
    "fetch_zoom_for",
]
