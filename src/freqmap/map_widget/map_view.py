"""QWidget based map view drawing a layer stack of basemaps and markers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from PySide6.QtCore import QPoint, QPointF, QTimer, Signal
from PySide6.QtGui import QCloseEvent, QImage, QPainter, QResizeEvent
from PySide6.QtWidgets import QWidget

from ..config import (
    DEFAULT_CENTER_LONLAT,
    DEFAULT_MAX_ZOOM,
    DEFAULT_ZOOM,
    MAX_ZOOM,
    MIN_ZOOM,
    REPAINT_COALESCE_MS,
    TILE_SIZE,
)
from ..icon_renderer import IconRenderer
from ..projection import HALF_WORLD, from_lonlat, to_lonlat
from .input_handler import InputHandler
from .layers import LayerCollection, MapLayer, TileLayer, VectorLayer
from .map_renderer import MapRenderer
from .overlay import TooltipOverlay
from .tile_monitor import ListenerScope
from .viewport import ViewState, compute_view_state

if TYPE_CHECKING:  # pragma: no cover - import for type checkers only
    from ..markers import Marker

LOGGER = logging.getLogger(__name__)


class MapView(QWidget):
    """Interactive slippy map widget.

    The view owns a :class:`LayerCollection` drawn bottom to top, a camera
    stored as an EPSG:3857 centre plus a fractional zoom, and a single
    :class:`TooltipOverlay`.  Layer, tile and marker changes are coalesced
    into one repaint per :data:`~freqmap.config.REPAINT_COALESCE_MS`.
    """

    viewChanged = Signal(float, float, float)
    """Signal emitted with ``(center_x, center_y, zoom)`` after camera moves."""

    pointerMoved = Signal(QPointF, object)
    """Signal emitted with the hover pixel and its ``(x, y)`` map coordinate."""

    def __init__(
        self,
        parent: QWidget | None = None,
        *,
        icon_renderer: IconRenderer | None = None,
        center_lonlat: tuple[float, float] = DEFAULT_CENTER_LONLAT,
        zoom: float = DEFAULT_ZOOM,
        min_zoom: float = MIN_ZOOM,
        max_zoom: float = MAX_ZOOM,
        tile_size: int = TILE_SIZE,
    ) -> None:
        super().__init__(parent)

        self._min_zoom = min_zoom
        self._max_zoom = max_zoom
        self._tile_size = tile_size
        self._home_center = from_lonlat(*center_lonlat)
        self._home_zoom = self._clamp_zoom(zoom)
        self._center_x, self._center_y = self._home_center
        self._zoom = self._home_zoom
        self._is_shut_down = False

        self._layers = LayerCollection(parent=self)
        self._layer_listeners: dict[int, tuple[MapLayer, ListenerScope]] = {}
        self._layers.changed.connect(self._on_layers_changed)

        self._renderer = MapRenderer(icon_renderer=icon_renderer)

        self._overlay = TooltipOverlay(self)
        self._overlay.anchorChanged.connect(self._place_overlay)

        self._input_handler = InputHandler(min_zoom=min_zoom, max_zoom=max_zoom, parent=self)
        self._input_handler.pan_requested.connect(self._on_pan_requested)
        self._input_handler.zoom_requested.connect(self._on_zoom_requested)
        self._input_handler.pointer_moved.connect(self._on_pointer_moved)
        self._input_handler.cursor_changed.connect(self.setCursor)
        self._input_handler.cursor_reset.connect(self.unsetCursor)

        self._update_timer = QTimer(self)
        self._update_timer.setSingleShot(True)
        self._update_timer.setInterval(REPAINT_COALESCE_MS)
        self._update_timer.timeout.connect(self.update)

        self.setMouseTracking(True)
        self.setMinimumSize(320, 240)

    # ------------------------------------------------------------------
    @property
    def layers(self) -> LayerCollection:
        return self._layers

    # ------------------------------------------------------------------
    @property
    def overlay(self) -> TooltipOverlay:
        return self._overlay

    # ------------------------------------------------------------------
    @property
    def zoom(self) -> float:
        return self._zoom

    # ------------------------------------------------------------------
    @property
    def center(self) -> tuple[float, float]:
        """View centre in EPSG:3857 metres."""

        return self._center_x, self._center_y

    # ------------------------------------------------------------------
    def center_lonlat(self) -> tuple[float, float]:
        return to_lonlat(self._center_x, self._center_y)

    # ------------------------------------------------------------------
    def set_zoom(self, zoom: float) -> None:
        """Clamp ``zoom`` to the supported range and schedule a repaint."""

        zoom = self._clamp_zoom(zoom)
        if zoom == self._zoom:
            return
        self._zoom = zoom
        self._clamp_center()
        self._view_changed()

    # ------------------------------------------------------------------
    def set_center(self, x: float, y: float) -> None:
        """Centre the viewport on EPSG:3857 coordinate ``(x, y)``."""

        self._center_x = float(x)
        self._center_y = float(y)
        self._clamp_center()
        self._view_changed()

    # ------------------------------------------------------------------
    def center_on(self, lon: float, lat: float) -> None:
        self.set_center(*from_lonlat(lon, lat))

    # ------------------------------------------------------------------
    def reset_view(self) -> None:
        """Restore the initial camera position and zoom level."""

        self._zoom = self._home_zoom
        self.set_center(*self._home_center)

    # ------------------------------------------------------------------
    def view_state(self) -> ViewState:
        """Return the camera parameters for the current widget geometry."""

        return compute_view_state(
            self._center_x,
            self._center_y,
            self._zoom,
            max(1, self.width()),
            max(1, self.height()),
            self._tile_size,
            DEFAULT_MAX_ZOOM,
        )

    # ------------------------------------------------------------------
    def coordinate_at(self, pixel: QPointF) -> tuple[float, float]:
        """Return the EPSG:3857 coordinate under widget position *pixel*."""

        return self.view_state().pixel_to_coordinate(pixel.x(), pixel.y())

    # ------------------------------------------------------------------
    def pixel_for(self, coordinate: tuple[float, float]) -> QPointF:
        x, y = self.view_state().coordinate_to_pixel(*coordinate)
        return QPointF(x, y)

    # ------------------------------------------------------------------
    def hit_test(self, pixel: QPointF) -> Optional["Marker"]:
        """Return the top-most marker drawn under *pixel*, if any."""

        return self._renderer.marker_at(self._layers, self.view_state(), pixel)

    # ------------------------------------------------------------------
    def update_size(self) -> None:
        """Re-read the widget geometry and re-layout dependent elements."""

        self._clamp_center()
        self._place_overlay()
        self._schedule_update()
        self._emit_view_changed()

    # ------------------------------------------------------------------
    def render_sync(self) -> None:
        """Paint immediately instead of waiting for the coalescing timer."""

        self._update_timer.stop()
        self.repaint()

    # ------------------------------------------------------------------
    def export_current_view(self) -> QImage:
        """Return the rendered map, markers and overlay as an image."""

        self._update_timer.stop()
        return self.grab().toImage()

    # ------------------------------------------------------------------
    def shutdown(self) -> None:
        """Stop background work before the widget is destroyed."""

        if self._is_shut_down:
            return
        self._is_shut_down = True
        self._update_timer.stop()
        for _, listeners in self._layer_listeners.values():
            listeners.release()
        self._layer_listeners.clear()
        for layer in self._layers.tile_layers():
            layer.source.shutdown()
        LOGGER.debug("Map view shut down with %d layers", len(self._layers))

    # ------------------------------------------------------------------
    def paintEvent(self, event) -> None:  # type: ignore[override]
        """Render the current scene using CPU backed ``QPainter`` drawing."""

        painter = QPainter(self)
        try:
            self._renderer.render(painter, self._layers.to_list(), self.view_state())
        finally:
            painter.end()

    # ------------------------------------------------------------------
    def closeEvent(self, event: QCloseEvent) -> None:  # type: ignore[override]
        """Tear down background threads before the widget is destroyed."""

        self.shutdown()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    def resizeEvent(self, event: QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._place_overlay()

    # ------------------------------------------------------------------
    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        self._input_handler.handle_mouse_press(event)
        super().mousePressEvent(event)

    # ------------------------------------------------------------------
    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        self._input_handler.handle_mouse_move(event)
        super().mouseMoveEvent(event)

    # ------------------------------------------------------------------
    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        self._input_handler.handle_mouse_release(event)
        super().mouseReleaseEvent(event)

    # ------------------------------------------------------------------
    def wheelEvent(self, event) -> None:  # type: ignore[override]
        self._input_handler.handle_wheel_event(event, self._zoom)
        super().wheelEvent(event)

    # ------------------------------------------------------------------
    def _schedule_update(self, *_args: object) -> None:
        """Start the coalescing timer when layers, tiles or markers change."""

        if self._is_shut_down:
            return
        if not self._update_timer.isActive():
            self._update_timer.start()

    # ------------------------------------------------------------------
    def _on_layers_changed(self) -> None:
        """Track change signals of layers entering or leaving the stack."""

        current = {id(layer): layer for layer in self._layers}
        for key in list(self._layer_listeners):
            if key not in current:
                _, listeners = self._layer_listeners.pop(key)
                listeners.release()

        for key, layer in current.items():
            if key in self._layer_listeners:
                continue
            listeners = ListenerScope()
            if isinstance(layer, TileLayer):
                listeners.connect(layer.opacityChanged, self._schedule_update)
                listeners.connect(layer.source.tilesChanged, self._schedule_update)
            elif isinstance(layer, VectorLayer):
                listeners.connect(layer.source.featuresChanged, self._schedule_update)
            self._layer_listeners[key] = (layer, listeners)

        self._schedule_update()

    # ------------------------------------------------------------------
    def _on_pan_requested(self, delta: QPointF) -> None:
        """Translate drag gestures from screen space to map metres."""

        resolution = self.view_state().resolution
        self._center_x -= delta.x() * resolution
        self._center_y += delta.y() * resolution
        self._clamp_center()
        self._view_changed()

    # ------------------------------------------------------------------
    def _on_zoom_requested(self, new_zoom: float, anchor: QPointF) -> None:
        """Zoom around ``anchor`` to keep the cursor position fixed."""

        anchor_x, anchor_y = self.coordinate_at(anchor)
        self._zoom = self._clamp_zoom(new_zoom)
        state = self.view_state()
        # Shift the centre so the anchor coordinate stays under the cursor.
        offset_x, offset_y = state.pixel_to_coordinate(anchor.x(), anchor.y())
        self._center_x += anchor_x - offset_x
        self._center_y += anchor_y - offset_y
        self._clamp_center()
        self._view_changed()

    # ------------------------------------------------------------------
    def _on_pointer_moved(self, pixel: QPointF) -> None:
        self.pointerMoved.emit(QPointF(pixel), self.coordinate_at(pixel))

    # ------------------------------------------------------------------
    def _place_overlay(self) -> None:
        coordinate = self._overlay.position()
        if coordinate is None:
            self._overlay.hide()
            return
        pixel = self.pixel_for(coordinate)
        self._overlay.place_at(QPoint(round(pixel.x()), round(pixel.y())))

    # ------------------------------------------------------------------
    def _view_changed(self) -> None:
        self._place_overlay()
        self._schedule_update()
        self._emit_view_changed()

    # ------------------------------------------------------------------
    def _emit_view_changed(self) -> None:
        self.viewChanged.emit(float(self._center_x), float(self._center_y), float(self._zoom))

    # ------------------------------------------------------------------
    def _clamp_zoom(self, zoom: float) -> float:
        return max(self._min_zoom, min(self._max_zoom, float(zoom)))

    # ------------------------------------------------------------------
    def _clamp_center(self) -> None:
        """Wrap the centre horizontally and keep the poles out of view."""

        self._center_x = (self._center_x + HALF_WORLD) % (2.0 * HALF_WORLD) - HALF_WORLD

        resolution = self.view_state().resolution
        half_view = max(1, self.height()) / 2.0 * resolution
        if half_view >= HALF_WORLD:
            self._center_y = 0.0
            return
        limit = HALF_WORLD - half_view
        self._center_y = min(max(self._center_y, -limit), limit)


__all__ = ["MapView"]
