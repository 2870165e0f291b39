"""Swap the visible basemap without exposing half-loaded tiles.

The replacement layer is stacked on top at zero opacity, its tiles are
preloaded through :class:`TileLoadMonitor`, and only then is it revealed.
After a short delay for the fade to settle it takes over the base position
and the previous layer is removed.  Index ``0`` of the layer stack holds a
fully opaque tile layer at every step of the sequence.

Two overlapping :meth:`BaseLayerSwitcher.switch_to` calls are not serialised;
the later swap simply finishes last.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Protocol

from PySide6.QtCore import QObject, QTimer, Signal

from ..basemaps import BaseLayerConfig, BasemapCatalog
from ..config import CROSSFADE_DELAY_MS
from .layers import LayerCollection, TileLayer
from .pending import PendingOperation
from .tile_fetcher import UrlTemplateFetcher
from .tile_monitor import TileLoadMonitor, WaitState
from .tile_source import TileSource
from .viewport import ViewState

LOGGER = logging.getLogger(__name__)

TileSourceFactory = Callable[[BaseLayerConfig], TileSource]


class SupportsLayerStack(Protocol):
    """Map interface used by the switcher."""

    @property
    def layers(self) -> LayerCollection:  # pragma: no cover - interface definition only
        ...

    def view_state(self) -> ViewState:  # pragma: no cover - interface definition only
        ...


def create_tile_source(config: BaseLayerConfig) -> TileSource:
    """Build the HTTP backed tile source described by *config*."""

    return TileSource(
        UrlTemplateFetcher(config.resolved_template),
        max_zoom=config.max_zoom,
        attribution=config.resolved_attribution,
    )


@dataclass(eq=False)
class _Swap:
    """One in-flight :meth:`BaseLayerSwitcher.switch_to` call."""

    map_view: SupportsLayerStack
    layer: TileLayer
    name: str
    operation: PendingOperation
    timer: Optional[QTimer] = None


class BaseLayerSwitcher(QObject):
    """Crossfade between basemaps of a :class:`BasemapCatalog`."""

    layerChanged = Signal(str)
    """Emitted with the new layer name once a swap completed."""

    def __init__(
        self,
        catalog: BasemapCatalog,
        *,
        monitor: TileLoadMonitor | None = None,
        source_factory: TileSourceFactory = create_tile_source,
        crossfade_delay_ms: int = CROSSFADE_DELAY_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._catalog = catalog
        self._monitor = monitor or TileLoadMonitor(parent=self)
        self._source_factory = source_factory
        self._crossfade_delay_ms = crossfade_delay_ms
        self._map: Optional[SupportsLayerStack] = None
        self._current_layer: Optional[str] = None
        self._swaps: list[_Swap] = []

    # ------------------------------------------------------------------
    @property
    def current_layer(self) -> Optional[str]:
        return self._current_layer

    # ------------------------------------------------------------------
    @property
    def catalog(self) -> BasemapCatalog:
        return self._catalog

    # ------------------------------------------------------------------
    @property
    def pending_swaps(self) -> int:
        """Number of swaps that have neither completed nor been cancelled."""

        return len(self._swaps)

    # ------------------------------------------------------------------
    def attach(self, map_view: Optional[SupportsLayerStack], current_layer: Optional[str] = None) -> None:
        """Bind the switcher to *map_view* whose base layer is *current_layer*."""

        self._map = map_view
        self._current_layer = current_layer

    # ------------------------------------------------------------------
    def build_layer(self, name: str, *, opacity: float = 1.0) -> Optional[TileLayer]:
        """Create a tile layer for catalog entry *name*, or ``None`` if unknown."""

        config = self._catalog.get(name)
        if config is None:
            return None
        return TileLayer(self._source_factory(config), name=name, opacity=opacity)

    # ------------------------------------------------------------------
    def switch_to(self, name: str) -> PendingOperation:
        """Crossfade to basemap *name*; the operation resolves with ``True`` on success."""

        if not name or self._map is None:
            LOGGER.warning("Layer name and map instance are required")
            return PendingOperation.resolved(False)

        new_layer = self.build_layer(name, opacity=0.0)
        if new_layer is None:
            LOGGER.warning('Base layer "%s" not found', name)
            return PendingOperation.resolved(False)

        swap = _Swap(self._map, new_layer, name, PendingOperation())
        self._swaps.append(swap)
        # Stacked above everything while invisible; the base position is
        # untouched until the new tiles are ready.
        swap.map_view.layers.append(new_layer)

        tile_wait = self._monitor.wait(new_layer.source, swap.map_view.view_state())
        tile_wait.add_done_callback(partial(self._reveal, swap))
        return swap.operation

    # ------------------------------------------------------------------
    def cancel_pending(self) -> None:
        """Abort every unfinished swap and resolve it with ``False``.

        Layers added by those swaps are taken off the stack and their tile
        sources stopped, so the previous base layer stays in place.
        """

        swaps, self._swaps = self._swaps, []
        for swap in swaps:
            self._discard(swap)

    # ------------------------------------------------------------------
    def _reveal(self, swap: _Swap, wait_state: object) -> None:
        if swap not in self._swaps:
            return
        if self._map is not swap.map_view or wait_state is WaitState.CANCELLED:
            LOGGER.debug('Swap to "%s" abandoned (%s)', swap.name, wait_state)
            self._swaps.remove(swap)
            self._discard(swap)
            return

        LOGGER.debug('Tiles for "%s" settled (%s), revealing layer', swap.name, wait_state)
        old_layer = swap.map_view.layers.item_at(0)
        swap.layer.set_opacity(1.0)

        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(self._crossfade_delay_ms)
        timer.timeout.connect(partial(self._promote, swap, old_layer))
        swap.timer = timer
        timer.start()

    # ------------------------------------------------------------------
    def _promote(self, swap: _Swap, old_layer: object) -> None:
        """Move the swap's layer into the base position, then drop *old_layer*."""

        if swap not in self._swaps:
            return
        self._swaps.remove(swap)
        if swap.timer is not None:
            swap.timer.deleteLater()
            swap.timer = None
        if self._map is not swap.map_view:
            self._discard(swap)
            return

        layers = swap.map_view.layers
        if layers.index_of(swap.layer) < 0:
            LOGGER.warning('Base layer "%s" was removed before the swap completed', swap.name)
            swap.operation.resolve(False)
            return

        # Moving first keeps an opaque tile layer at index 0 throughout.
        layers.move(swap.layer, 0)
        if isinstance(old_layer, TileLayer) and old_layer is not swap.layer and layers.remove(old_layer):
            old_layer.source.shutdown()

        self._current_layer = swap.name
        LOGGER.debug('Base layer switched to "%s"', swap.name)
        self.layerChanged.emit(swap.name)
        swap.operation.resolve(True)

    # ------------------------------------------------------------------
    def _discard(self, swap: _Swap) -> None:
        if swap.timer is not None:
            swap.timer.stop()
            swap.timer.deleteLater()
            swap.timer = None
        self._monitor.cancel_source(swap.layer.source)
        swap.map_view.layers.remove(swap.layer)
        swap.layer.source.shutdown()
        swap.operation.resolve(False)


__all__ = [
    "BaseLayerSwitcher",
    "SupportsLayerStack",
    "TileSourceFactory",
    "create_tile_source",
]
