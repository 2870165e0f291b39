"""Raster tile source with background loading and load lifecycle signals."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable, Optional

from PySide6.QtCore import QObject, QThread, Signal, Slot
from PySide6.QtGui import QImage

from ..config import TILE_CACHE_LIMIT, TILE_MAX_ATTEMPTS, TILE_SIZE
from ..errors import TileDecodeError, TileFetchError, TileLoadingError
from .tile_fetcher import TileFetcher
from .viewport import TileCoord, TileGrid

LOGGER = logging.getLogger(__name__)


class _TileWorker(QObject):
    """Background worker that retrieves tiles without blocking the GUI."""

    tile_loaded = Signal(int, int, int, object)
    tile_failed = Signal(int, int, int, str, bool)

    def __init__(self, fetcher: TileFetcher) -> None:
        super().__init__()
        self._fetcher = fetcher

    @Slot(int, int, int)
    def request_tile(self, z: int, x: int, y: int) -> None:
        """Load a tile inside the worker thread and report the outcome."""

        try:
            payload = self._fetcher.fetch(z, x, y)
            if payload is None:
                raise TileLoadingError(f"Tile {z}/{x}/{y} does not exist")
            image = QImage.fromData(payload)
            if image.isNull():
                raise TileDecodeError(f"Tile {z}/{x}/{y} is not a decodable image")
        except TileFetchError as exc:
            LOGGER.warning("Tile %s/%s/%s request failed: %s", z, x, y, exc)
            self.tile_failed.emit(z, x, y, str(exc), False)
            return
        except TileLoadingError as exc:
            LOGGER.warning("Tile %s/%s/%s could not be loaded: %s", z, x, y, exc)
            self.tile_failed.emit(z, x, y, str(exc), True)
            return

        self.tile_loaded.emit(z, x, y, image)


class TileSource(QObject):
    """Load, cache and announce raster tiles for one basemap.

    ``tileLoadStart`` fires when a tile request is issued, ``tileLoadEnd`` when
    the image arrived and ``tileLoadError`` when it failed.  Tiles already in
    the cache emit nothing, which is why waiting code must not rely on seeing
    events for every visible tile.
    """

    tileLoadStart = Signal(object)
    tileLoadEnd = Signal(object)
    tileLoadError = Signal(object)
    tilesChanged = Signal()

    _request_tile = Signal(int, int, int)

    def __init__(
        self,
        fetcher: TileFetcher,
        *,
        max_zoom: int,
        attribution: str = "",
        tile_size: int = TILE_SIZE,
        cache_limit: int = TILE_CACHE_LIMIT,
        max_attempts: int = TILE_MAX_ATTEMPTS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._fetcher = fetcher
        self._tile_grid = TileGrid(tile_size=tile_size, max_zoom=max_zoom)
        self._attribution = attribution
        self._cache_limit = cache_limit
        self._max_attempts = max(1, max_attempts)

        self._tile_cache: OrderedDict[TileCoord, QImage] = OrderedDict()
        self._pending_tiles: set[TileCoord] = set()
        self._missing_tiles: set[TileCoord] = set()
        self._failed_attempts: dict[TileCoord, int] = {}

        self._loader_thread: QThread | None = QThread(self)
        self._loader_thread.setObjectName("freqmap-tile-loader")
        self._tile_worker = _TileWorker(self._fetcher)
        self._tile_worker.moveToThread(self._loader_thread)
        self._tile_worker.tile_loaded.connect(self._handle_tile_loaded)
        self._tile_worker.tile_failed.connect(self._handle_tile_failed)
        self._request_tile.connect(self._tile_worker.request_tile)
        self._loader_thread.finished.connect(self._tile_worker.deleteLater)
        self._loader_thread.start()

    # ------------------------------------------------------------------
    @property
    def tile_grid(self) -> TileGrid:
        return self._tile_grid

    # ------------------------------------------------------------------
    @property
    def attribution(self) -> str:
        return self._attribution

    # ------------------------------------------------------------------
    def shutdown(self) -> None:
        """Stop the background worker thread and release resources."""

        if self._loader_thread is None:
            return

        if self._loader_thread.isRunning():
            self._loader_thread.quit()
            self._loader_thread.wait()

        self._loader_thread = None
        close = getattr(self._fetcher, "close", None)
        if callable(close):
            close()

    # ------------------------------------------------------------------
    def get_tile(self, z: int, x: int, y: int) -> Optional[QImage]:
        """Return the cached tile or start loading it.

        Cached tiles are returned without emitting any lifecycle signal.
        Tiles that do not exist, or kept failing, are not requested again.
        """

        key = (z, x, y)
        tile = self.cached_tile(key)
        if tile is None:
            self.ensure_tile(key)
        return tile

    # ------------------------------------------------------------------
    def cached_tile(self, tile_key: TileCoord) -> Optional[QImage]:
        """Return a cached tile, updating the LRU ordering when found."""

        tile = self._tile_cache.get(tile_key)
        if tile is not None:
            self._tile_cache.move_to_end(tile_key)
        return tile

    # ------------------------------------------------------------------
    def ensure_tile(self, tile_key: TileCoord) -> None:
        """Schedule ``tile_key`` for loading when it is not cached."""

        if self._loader_thread is None:
            return
        if tile_key in self._tile_cache:
            return
        if tile_key in self._missing_tiles or tile_key in self._pending_tiles:
            return

        self._pending_tiles.add(tile_key)
        self.tileLoadStart.emit(tile_key)
        self._request_tile.emit(*tile_key)

    # ------------------------------------------------------------------
    def is_tile_missing(self, tile_key: TileCoord) -> bool:
        """Return ``True`` when ``tile_key`` will not be requested again."""

        return tile_key in self._missing_tiles

    # ------------------------------------------------------------------
    def pending_tiles(self) -> Iterable[TileCoord]:
        """Expose the set of in-flight requests for diagnostics/testing."""

        return set(self._pending_tiles)

    # ------------------------------------------------------------------
    def _handle_tile_loaded(self, z: int, x: int, y: int, tile: QImage) -> None:
        """Store the freshly loaded tile and emit update signals."""

        key = (z, x, y)
        self._pending_tiles.discard(key)
        self._missing_tiles.discard(key)
        self._failed_attempts.pop(key, None)
        self._tile_cache[key] = tile
        self._tile_cache.move_to_end(key)

        while len(self._tile_cache) > self._cache_limit:
            self._tile_cache.popitem(last=False)

        self.tileLoadEnd.emit(key)
        self.tilesChanged.emit()

    # ------------------------------------------------------------------
    def _handle_tile_failed(self, z: int, x: int, y: int, reason: str, permanent: bool) -> None:
        """Record a failed load and notify listeners.

        Absent or undecodable tiles are marked missing at once.  Transport
        failures leave the tile requestable until ``max_attempts`` is reached.
        """

        key = (z, x, y)
        self._pending_tiles.discard(key)
        self._tile_cache.pop(key, None)
        attempts = self._failed_attempts.get(key, 0) + 1
        if permanent or attempts >= self._max_attempts:
            self._failed_attempts.pop(key, None)
            self._missing_tiles.add(key)
            LOGGER.debug("Tile %s marked missing: %s", key, reason)
        else:
            self._failed_attempts[key] = attempts
            LOGGER.debug("Tile %s failed (attempt %d of %d): %s", key, attempts, self._max_attempts, reason)
        self.tileLoadError.emit(key)
        self.tilesChanged.emit()


__all__ = ["TileSource"]
