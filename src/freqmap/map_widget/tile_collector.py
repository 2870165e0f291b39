"""Tile collection and request scheduling for the map renderer."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Protocol

from PySide6.QtGui import QImage

from .viewport import TileCoord, ViewState


class SupportsTileCache(Protocol):
    """Subset of :class:`~freqmap.map_widget.tile_source.TileSource` used here."""

    def cached_tile(self, tile_key: TileCoord) -> Optional[QImage]:  # pragma: no cover
        ...

    def is_tile_missing(self, tile_key: TileCoord) -> bool:  # pragma: no cover
        ...

    def ensure_tile(self, tile_key: TileCoord) -> None:  # pragma: no cover
        ...


@dataclass(frozen=True)
class PlacedTile:
    """A cached tile image together with its on-screen origin."""

    key: TileCoord
    image: QImage
    origin_x: float
    origin_y: float


def collect_tiles(
    view_state: ViewState,
    tiles: SupportsTileCache,
) -> tuple[list[PlacedTile], list[tuple[float, TileCoord]]]:
    """Gather cached tiles intersecting the viewport and list the ones to fetch.

    Columns wrap around the antimeridian; rows outside the world are skipped.
    The request list carries the squared distance of each tile centre to the
    viewport centre so closer tiles can be fetched first.
    """

    size = view_state.scaled_tile_size
    start_tile_x = math.floor(view_state.view_top_left_x / size)
    start_tile_y = math.floor(view_state.view_top_left_y / size)
    end_tile_x = math.ceil((view_state.view_top_left_x + view_state.width) / size)
    end_tile_y = math.ceil((view_state.view_top_left_y + view_state.height) / size)

    tiles_to_draw: list[PlacedTile] = []
    tiles_to_request: list[tuple[float, TileCoord]] = []

    for tile_y in range(start_tile_y, end_tile_y):
        if tile_y < 0 or tile_y >= view_state.tiles_across:
            continue
        for tile_x in range(start_tile_x, end_tile_x):
            wrapped_x = tile_x % view_state.tiles_across
            tile_key = (view_state.fetch_zoom, wrapped_x, tile_y)

            origin_x = tile_x * size - view_state.view_top_left_x
            origin_y = tile_y * size - view_state.view_top_left_y

            image = tiles.cached_tile(tile_key)
            if image is None:
                if not tiles.is_tile_missing(tile_key):
                    dist_sq = (
                        (origin_x + size / 2.0 - view_state.width / 2.0) ** 2
                        + (origin_y + size / 2.0 - view_state.height / 2.0) ** 2
                    )
                    tiles_to_request.append((dist_sq, tile_key))
                continue

            tiles_to_draw.append(PlacedTile(tile_key, image, origin_x, origin_y))

    return tiles_to_draw, tiles_to_request


def request_tiles(
    tiles_to_request: list[tuple[float, TileCoord]],
    tiles: SupportsTileCache,
) -> None:
    """Submit background load requests for tiles sorted by distance."""

    if not tiles_to_request:
        return

    tiles_to_request.sort(key=lambda item: item[0])
    for _, tile_key in tiles_to_request:
        tiles.ensure_tile(tile_key)


__all__ = ["PlacedTile", "SupportsTileCache", "collect_tiles", "request_tiles"]
