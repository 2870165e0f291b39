"""Host-facing frequency map widget.

:class:`FrequencyMapViewer` mounts a :class:`~freqmap.map_widget.MapView`
into a host container, plots a record set as pie-chart markers and exposes
the small API host applications drive: gene filtering, basemap switching,
image export and teardown.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QEvent, QObject, QTimer, Signal
from PySide6.QtGui import QImage
from PySide6.QtWidgets import QVBoxLayout, QWidget

from .basemaps import BasemapCatalog, default_catalog
from .config import DEFAULT_BASE_LAYER, POST_LOAD_RESIZE_DELAY_MS, RESIZE_DEBOUNCE_MS
from .errors import ExportError, MapInitializationError
from .icon_renderer import IconRenderer
from .map_widget import (
    BaseLayerSwitcher,
    MapView,
    PendingOperation,
    TileLayer,
    TileLoadMonitor,
    TooltipController,
    TooltipOverlay,
    VectorLayer,
    VectorSource,
    WaitState,
    create_tile_source,
)
from .map_widget.base_layer_switcher import TileSourceFactory
from .markers import MarkerBuilder, MarkerStore
from .records import FieldConfig, FrequencyRecord

LOGGER = logging.getLogger(__name__)


@dataclass
class ViewerState:
    """Everything a mounted viewer owns; empty until :meth:`initialize`."""

    target: Optional[QWidget] = None
    map_view: Optional[MapView] = None
    vector_source: Optional[VectorSource] = None
    vector_layer: Optional[VectorLayer] = None
    overlay: Optional[TooltipOverlay] = None
    markers: Optional[MarkerStore] = None
    tooltips: Optional[TooltipController] = None
    records: Optional[list[FrequencyRecord]] = None
    resize_timer: Optional[QTimer] = None
    post_load_timer: Optional[QTimer] = None


class FrequencyMapViewer(QObject):
    """Embed an allele frequency map into a host widget.

    Parameters
    ----------
    catalog:
        Basemaps offered by :meth:`switch_base_layer`; defaults to
        :func:`~freqmap.basemaps.default_catalog`.
    base_layer:
        Catalog entry shown when the map is first mounted.
    field_config:
        Record attribute names.  When omitted the layout is detected from the
        records passed to :meth:`initialize`.
    """

    baseLayerChanged = Signal(str)
    """Emitted with the basemap name after each completed swap."""

    def __init__(
        self,
        *,
        catalog: BasemapCatalog | None = None,
        base_layer: str = DEFAULT_BASE_LAYER,
        field_config: FieldConfig | None = None,
        icon_renderer: IconRenderer | None = None,
        monitor: TileLoadMonitor | None = None,
        source_factory: TileSourceFactory = create_tile_source,
        resize_debounce_ms: int = RESIZE_DEBOUNCE_MS,
        post_load_delay_ms: int = POST_LOAD_RESIZE_DELAY_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._catalog = catalog if catalog is not None else default_catalog()
        self._base_layer = base_layer
        self._field_config = field_config
        self._icons = icon_renderer or IconRenderer()
        self._monitor = monitor or TileLoadMonitor(parent=self)
        self._resize_debounce_ms = resize_debounce_ms
        self._post_load_delay_ms = post_load_delay_ms
        self._switcher = BaseLayerSwitcher(
            self._catalog,
            monitor=self._monitor,
            source_factory=source_factory,
            parent=self,
        )
        self._switcher.layerChanged.connect(self.baseLayerChanged)
        self._state = ViewerState()

    # ------------------------------------------------------------------
    @property
    def state(self) -> ViewerState:
        return self._state

    # ------------------------------------------------------------------
    @property
    def switcher(self) -> BaseLayerSwitcher:
        return self._switcher

    # ------------------------------------------------------------------
    @property
    def catalog(self) -> BasemapCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    @property
    def current_base_layer(self) -> Optional[str]:
        return self._switcher.current_layer

    # ------------------------------------------------------------------
    @property
    def marker_count(self) -> int:
        """Number of markers currently drawn."""

        markers = self._state.markers
        return len(markers) if markers is not None else 0

    # ------------------------------------------------------------------
    def get_map(self) -> Optional[MapView]:
        return self._state.map_view

    # ------------------------------------------------------------------
    def genes(self) -> list[str]:
        """Return the distinct genes of the loaded records."""

        markers = self._state.markers
        return markers.genes() if markers is not None else []

    # ------------------------------------------------------------------
    def initialize(self, target: QWidget | None, records: Sequence[FrequencyRecord]) -> PendingOperation:
        """Mount the map into *target* and plot *records*.

        The returned operation resolves with the :class:`MapView` once the
        layout settled and the initial basemap tiles loaded (or the wait gave
        up).  A missing *target* raises :class:`MapInitializationError`.
        Calling it again while mounted tears the previous map down first.
        """

        if target is None:
            raise MapInitializationError("Target widget is required")
        if self._state.map_view is not None:
            self._unmount()

        try:
            map_view, base_layer = self._mount(target, records)
        except Exception:
            LOGGER.exception("Failed to initialize map")
            raise

        operation = PendingOperation(self)
        # One event-loop turn lets the host layout assign the real geometry
        # before the first size measurement.
        QTimer.singleShot(0, partial(self._after_first_frame, map_view, base_layer, operation))
        return operation

    # ------------------------------------------------------------------
    def filter_by_gene(self, gene: str) -> Optional[int]:
        """Show only markers of *gene*; return the marker count or ``None`` on no-op."""

        markers = self._state.markers
        if markers is None:
            LOGGER.warning("Vector source or features not available")
            return None
        return markers.filter_by_gene(gene)

    # ------------------------------------------------------------------
    def add_all_markers(self) -> Optional[int]:
        """Reset to the unfiltered view; return the marker count or ``None`` on no-op."""

        state = self._state
        if state.markers is None or state.records is None:
            LOGGER.warning("Vector source or features not available")
            return None
        return state.markers.add_all(state.records)

    # ------------------------------------------------------------------
    def switch_base_layer(self, name: str) -> PendingOperation:
        """Crossfade to basemap *name*; see :meth:`BaseLayerSwitcher.switch_to`."""

        return self._switcher.switch_to(name)

    # ------------------------------------------------------------------
    def export_current_view(self, path: Path | str | None = None) -> Optional[QImage]:
        """Render the visible map to an image and optionally save it to *path*."""

        map_view = self._state.map_view
        if map_view is None:
            LOGGER.warning("Map instance not available")
            return None

        image = map_view.export_current_view()
        if path is not None:
            destination = Path(path)
            if not image.save(str(destination)):
                raise ExportError(f"Unable to write map image to '{destination}'")
            LOGGER.info("Exported map view to %s", destination)
        return image

    # ------------------------------------------------------------------
    def cleanup(self) -> None:
        """Detach the resize listener, cancel timers and stop tile loading."""

        state = self._state
        if state.target is not None:
            state.target.removeEventFilter(self)
        for timer in (state.resize_timer, state.post_load_timer):
            if timer is not None:
                timer.stop()
        self._switcher.cancel_pending()
        if state.tooltips is not None:
            state.tooltips.detach()
        if state.map_view is not None:
            for layer in state.map_view.layers.tile_layers():
                self._monitor.cancel_source(layer.source)
            state.map_view.shutdown()
        self._switcher.attach(None)
        self._state = ViewerState()

    # ------------------------------------------------------------------
    def eventFilter(self, watched: QObject, event: QEvent) -> bool:  # type: ignore[override]
        state = self._state
        if watched is state.target and event.type() == QEvent.Resize:
            if state.resize_timer is not None:
                # Restarting keeps only the trailing edge of a resize burst.
                state.resize_timer.start()
        return super().eventFilter(watched, event)

    # ------------------------------------------------------------------
    def _unmount(self) -> None:
        previous = self._state.map_view
        LOGGER.info("Viewer already mounted, releasing the previous map")
        self.cleanup()
        if previous is not None:
            # Reparenting also takes the widget out of the host layout.
            previous.setParent(None)
            previous.deleteLater()

    # ------------------------------------------------------------------
    def _mount(
        self,
        target: QWidget,
        records: Sequence[FrequencyRecord],
    ) -> tuple[MapView, TileLayer]:
        record_list = list(records)
        field_config = self._field_config or FieldConfig.for_records(record_list)

        base_layer = self._switcher.build_layer(self._base_layer)
        if base_layer is None:
            raise MapInitializationError(f'Base layer "{self._base_layer}" not found')

        map_view = MapView(target, icon_renderer=self._icons)
        layout = target.layout()
        if layout is None:
            layout = QVBoxLayout(target)
            layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(map_view)

        vector_source = VectorSource(map_view)
        vector_layer = VectorLayer(vector_source, map_view)
        map_view.layers.append(base_layer)
        map_view.layers.append(vector_layer)

        overlay = map_view.overlay
        markers = MarkerStore(
            vector_source,
            MarkerBuilder(self._icons, field_config),
            overlay=overlay,
        )
        markers.add_all(record_list)
        tooltips = TooltipController(map_view, overlay, icon_renderer=self._icons, parent=self)
        self._switcher.attach(map_view, self._base_layer)

        resize_timer = QTimer(self)
        resize_timer.setSingleShot(True)
        resize_timer.setInterval(self._resize_debounce_ms)
        resize_timer.timeout.connect(map_view.update_size)

        post_load_timer = QTimer(self)
        post_load_timer.setSingleShot(True)
        post_load_timer.setInterval(self._post_load_delay_ms)
        post_load_timer.timeout.connect(self._finish_initial_layout)

        self._state = ViewerState(
            target=target,
            map_view=map_view,
            vector_source=vector_source,
            vector_layer=vector_layer,
            overlay=overlay,
            markers=markers,
            tooltips=tooltips,
            records=record_list,
            resize_timer=resize_timer,
            post_load_timer=post_load_timer,
        )
        map_view.show()
        LOGGER.debug("Mounted map with %d markers from %d records", len(markers), len(record_list))
        return map_view, base_layer

    # ------------------------------------------------------------------
    def _after_first_frame(
        self,
        map_view: MapView,
        base_layer: TileLayer,
        operation: PendingOperation,
    ) -> None:
        if self._state.map_view is not map_view:
            # Cleaned up before the first frame.
            operation.resolve(None)
            return

        map_view.update_size()
        tile_wait = self._monitor.wait(base_layer.source, map_view.view_state())
        tile_wait.add_done_callback(partial(self._on_initial_tiles, map_view, operation))

    # ------------------------------------------------------------------
    def _on_initial_tiles(self, map_view: MapView, operation: PendingOperation, wait_state: object) -> None:
        state = self._state
        if state.map_view is not map_view or wait_state is WaitState.CANCELLED:
            operation.resolve(None)
            return

        LOGGER.debug("Initial tiles settled (%s)", wait_state)
        if state.post_load_timer is not None:
            state.post_load_timer.start()
        if state.target is not None:
            state.target.installEventFilter(self)
        operation.resolve(map_view)

    # ------------------------------------------------------------------
    def _finish_initial_layout(self) -> None:
        map_view = self._state.map_view
        if map_view is None:
            return
        map_view.update_size()
        map_view.render_sync()


__all__ = ["FrequencyMapViewer", "ViewerState"]
