"""Rendering logic for :class:`~freqmap.map_widget.map_view.MapView`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from PySide6.QtCore import QPointF, QRectF
from PySide6.QtGui import QColor, QPainter

from ..config import BACKGROUND_COLOR, ICON_SCALE
from ..icon_renderer import IconRenderer
from .layers import MapLayer, TileLayer, VectorLayer
from .tile_collector import collect_tiles, request_tiles
from .viewport import ViewState, compute_view_state

if TYPE_CHECKING:  # pragma: no cover - import for type checkers only
    from ..markers import Marker


class MapRenderer:
    """Paint an ordered layer stack with ``QPainter``.

    Tile layers are drawn bottom to top with their opacity applied; layers
    at zero opacity are skipped entirely.  Vector layers draw each marker's
    pie icon centred on its projected position.
    """

    def __init__(
        self,
        *,
        icon_renderer: IconRenderer | None = None,
        icon_scale: float = ICON_SCALE,
        background: str = BACKGROUND_COLOR,
    ) -> None:
        self._icons = icon_renderer or IconRenderer()
        self._icon_scale = icon_scale
        self._background = QColor(background)

    # ------------------------------------------------------------------
    @property
    def icon_pixel_size(self) -> int:
        """Edge length of a drawn marker icon in logical pixels."""

        return max(1, round(self._icons.size * self._icon_scale))

    # ------------------------------------------------------------------
    def render(self, painter: QPainter, layers: Sequence[MapLayer], view_state: ViewState) -> None:
        """Draw the current map scene into ``painter``."""

        painter.fillRect(0, 0, view_state.width, view_state.height, self._background)
        painter.setRenderHint(QPainter.Antialiasing, True)
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)

        for layer in layers:
            if isinstance(layer, TileLayer):
                self._render_tile_layer(painter, layer, view_state)
            elif isinstance(layer, VectorLayer):
                self._render_markers(painter, layer.source.features(), view_state)

    # ------------------------------------------------------------------
    def marker_at(
        self,
        layers: Iterable[MapLayer],
        view_state: ViewState,
        position: QPointF,
    ) -> Optional["Marker"]:
        """Return the top-most marker whose icon contains ``position``."""

        candidates: list["Marker"] = []
        for layer in layers:
            if isinstance(layer, VectorLayer):
                candidates.extend(layer.source.features())

        for marker in reversed(candidates):
            if self._marker_rect(marker, view_state).contains(position):
                return marker
        return None

    # ------------------------------------------------------------------
    def _render_tile_layer(self, painter: QPainter, layer: TileLayer, view_state: ViewState) -> None:
        if layer.opacity <= 0.0:
            return

        source = layer.source
        layer_state = view_state
        if view_state.fetch_zoom > source.tile_grid.max_zoom:
            # Sources with a shallower pyramid keep magnifying their last level.
            layer_state = compute_view_state(
                view_state.center_x,
                view_state.center_y,
                view_state.zoom,
                view_state.width,
                view_state.height,
                view_state.tile_size,
                source.tile_grid.max_zoom,
            )

        tiles_to_draw, tiles_to_request = collect_tiles(layer_state, source)
        request_tiles(tiles_to_request, source)
        if not tiles_to_draw:
            return

        painter.save()
        try:
            painter.setOpacity(layer.opacity)
            size = layer_state.scaled_tile_size
            for tile in tiles_to_draw:
                # Half a pixel of overlap hides seams between scaled tiles.
                target = QRectF(tile.origin_x, tile.origin_y, size + 0.5, size + 0.5)
                painter.drawImage(target, tile.image)
        finally:
            painter.restore()

    # ------------------------------------------------------------------
    def _render_markers(
        self,
        painter: QPainter,
        markers: Sequence["Marker"],
        view_state: ViewState,
    ) -> None:
        pixel_size = self.icon_pixel_size
        for marker in markers:
            rect = self._marker_rect(marker, view_state)
            if rect.right() < 0 or rect.bottom() < 0:
                continue
            if rect.left() > view_state.width or rect.top() > view_state.height:
                continue
            painter.drawImage(rect, self._icons.image(marker.icon, pixel_size))

    # ------------------------------------------------------------------
    def _marker_rect(self, marker: "Marker", view_state: ViewState) -> QRectF:
        x, y = view_state.coordinate_to_pixel(*marker.position)
        size = float(self.icon_pixel_size)
        return QRectF(x - size / 2.0, y - size / 2.0, size, size)


__all__ = ["MapRenderer"]
