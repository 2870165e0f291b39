"""Shared fixtures for the freqmap test-suite."""

from __future__ import annotations

import os
import sys
from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

pytest.importorskip("PySide6", reason="PySide6 is required for map tests", exc_type=ImportError)

from PySide6.QtCore import QObject, QTimer, Signal
from PySide6.QtGui import QColor, QImage
from PySide6.QtWidgets import QApplication

from freqmap.basemaps import BaseLayerConfig
from freqmap.map_widget.viewport import TileCoord, TileGrid


class ScriptedTileSource(QObject):
    """Network-free stand-in for :class:`~freqmap.map_widget.TileSource`.

    Requests settle after ``delay_ms`` on the event loop.  Coordinates for
    which ``fail`` returns ``True`` emit ``tileLoadError``; ``cached`` tiles
    are served immediately without any lifecycle signal.
    """

    tileLoadStart = Signal(object)
    tileLoadEnd = Signal(object)
    tileLoadError = Signal(object)
    tilesChanged = Signal()

    def __init__(
        self,
        *,
        name: str = "scripted",
        delay_ms: int = 10,
        fail: Callable[[TileCoord], bool] = lambda _key: False,
        cached: Iterable[TileCoord] = (),
        max_zoom: int = 19,
        color: str = "#3366cc",
    ) -> None:
        super().__init__()
        self.name = name
        self.delay_ms = delay_ms
        self._fail = fail
        self._tile_grid = TileGrid(max_zoom=max_zoom)
        self._image = QImage(256, 256, QImage.Format.Format_ARGB32)
        self._image.fill(QColor(color))
        self._cache: dict[TileCoord, QImage] = {key: self._image for key in cached}
        self._pending: set[TileCoord] = set()
        self._missing: set[TileCoord] = set()
        self.requested: list[TileCoord] = []
        self.is_shut_down = False

    @property
    def tile_grid(self) -> TileGrid:
        return self._tile_grid

    @property
    def attribution(self) -> str:
        return ""

    def get_tile(self, z: int, x: int, y: int) -> Optional[QImage]:
        key = (z, x, y)
        tile = self._cache.get(key)
        if tile is None:
            self.ensure_tile(key)
        return tile

    def cached_tile(self, tile_key: TileCoord) -> Optional[QImage]:
        return self._cache.get(tile_key)

    def is_tile_missing(self, tile_key: TileCoord) -> bool:
        return tile_key in self._missing

    def ensure_tile(self, tile_key: TileCoord) -> None:
        if self.is_shut_down:
            return
        if tile_key in self._cache or tile_key in self._missing or tile_key in self._pending:
            return
        self._pending.add(tile_key)
        self.requested.append(tile_key)
        self.tileLoadStart.emit(tile_key)
        QTimer.singleShot(self.delay_ms, partial(self._settle, tile_key))

    def pending_tiles(self) -> set[TileCoord]:
        return set(self._pending)

    def shutdown(self) -> None:
        self.is_shut_down = True

    def _settle(self, tile_key: TileCoord) -> None:
        self._pending.discard(tile_key)
        if self._fail(tile_key):
            self._missing.add(tile_key)
            self.tileLoadError.emit(tile_key)
        else:
            self._cache[tile_key] = self._image
            self.tileLoadEnd.emit(tile_key)
        self.tilesChanged.emit()


class ScriptedSourceFactory:
    """Tile source factory recording every source it hands out."""

    def __init__(self, **options: object) -> None:
        self.options = options
        self.sources: list[ScriptedTileSource] = []

    def __call__(self, config: BaseLayerConfig) -> ScriptedTileSource:
        source = ScriptedTileSource(name=config.name, max_zoom=config.max_zoom, **self.options)
        self.sources.append(source)
        return source


@pytest.fixture(scope="session")
def qapp() -> QApplication:
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def source_factory() -> ScriptedSourceFactory:
    return ScriptedSourceFactory()


@pytest.fixture
def sample_records() -> list[dict]:
    """Three BRCA1 and two TP53 locations."""

    return [
        {"gene": "BRCA1", "frequency": 0.25, "longitude": 2.35, "latitude": 48.85,
         "country": "France", "admin_level_1": "Ile-de-France"},
        {"gene": "BRCA1", "frequency": "0.5", "longitude": -0.12, "latitude": 51.5,
         "country": "United Kingdom", "admin_level_1": "England"},
        {"gene": "BRCA1", "frequency": 0.75, "longitude": 13.4, "latitude": 52.52,
         "country": "Germany"},
        {"gene": "TP53", "frequency": 0.1, "longitude": -74.0, "latitude": 40.7,
         "country": "United States", "admin_level_1": "New York"},
        {"gene": "TP53", "frequency": 1, "longitude": 139.69, "latitude": 35.68,
         "country": "Japan", "admin_level_1": "Tokyo"},
    ]
