"""Tests for the background-loading tile source."""

from __future__ import annotations

import threading
from typing import Optional

import pytest
from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QColor, QImage

from freqmap.errors import TileFetchError
from freqmap.map_widget.tile_source import TileSource


def _png_bytes(color: str = "#00ff00") -> bytes:
    image = QImage(4, 4, QImage.Format.Format_ARGB32)
    image.fill(QColor(color))
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    buffer.close()
    return bytes(data)


class _FakeFetcher:
    def __init__(self, payloads: dict[tuple[int, int, int], object]) -> None:
        self._payloads = payloads
        self._lock = threading.Lock()
        self.calls: list[tuple[int, int, int]] = []
        self.closed = False

    def fetch(self, z: int, x: int, y: int) -> Optional[bytes]:
        with self._lock:
            self.calls.append((z, x, y))
        payload = self._payloads.get((z, x, y))
        if isinstance(payload, Exception):
            raise payload
        return payload

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_source(qapp):
    sources: list[TileSource] = []

    def factory(payloads: dict) -> tuple[TileSource, _FakeFetcher]:
        fetcher = _FakeFetcher(payloads)
        source = TileSource(fetcher, max_zoom=5)
        sources.append(source)
        return source, fetcher

    yield factory
    for source in sources:
        source.shutdown()


def test_tile_loads_in_background_and_is_cached(qtbot, make_source) -> None:
    source, fetcher = make_source({(1, 0, 0): _png_bytes()})

    with qtbot.waitSignal(source.tileLoadStart, timeout=1000) as started:
        with qtbot.waitSignal(source.tileLoadEnd, timeout=2000) as finished:
            assert source.get_tile(1, 0, 0) is None

    assert started.args == [(1, 0, 0)]
    assert finished.args == [(1, 0, 0)]
    tile = source.get_tile(1, 0, 0)
    assert tile is not None and tile.width() == 4
    assert fetcher.calls == [(1, 0, 0)]
    assert not source.pending_tiles()


def test_cached_tile_emits_nothing(qtbot, make_source) -> None:
    source, _fetcher = make_source({(0, 0, 0): _png_bytes()})
    with qtbot.waitSignal(source.tileLoadEnd, timeout=2000):
        source.ensure_tile((0, 0, 0))

    with qtbot.assertNotEmitted(source.tileLoadStart):
        assert source.get_tile(0, 0, 0) is not None


def test_missing_tile_reports_error_and_is_not_requested_again(qtbot, make_source) -> None:
    source, fetcher = make_source({})

    with qtbot.waitSignal(source.tileLoadError, timeout=2000) as failed:
        source.get_tile(2, 1, 1)

    assert failed.args == [(2, 1, 1)]
    assert source.is_tile_missing((2, 1, 1))
    with qtbot.assertNotEmitted(source.tileLoadStart):
        source.get_tile(2, 1, 1)
    assert fetcher.calls == [(2, 1, 1)]


@pytest.mark.parametrize("payload", [TileFetchError("boom"), b"not an image"])
def test_fetch_and_decode_failures_settle_as_errors(qtbot, make_source, payload) -> None:
    source, _fetcher = make_source({(1, 1, 1): payload})

    with qtbot.waitSignal(source.tileLoadError, timeout=2000):
        source.ensure_tile((1, 1, 1))

    assert source.cached_tile((1, 1, 1)) is None


def test_duplicate_requests_are_coalesced(qtbot, make_source) -> None:
    source, fetcher = make_source({(1, 1, 0): _png_bytes()})

    with qtbot.waitSignal(source.tileLoadEnd, timeout=2000):
        source.ensure_tile((1, 1, 0))
        source.ensure_tile((1, 1, 0))

    assert fetcher.calls == [(1, 1, 0)]


def test_cache_evicts_least_recently_used(qtbot, qapp) -> None:
    payload = _png_bytes()
    fetcher = _FakeFetcher({(1, 0, 0): payload, (1, 1, 0): payload, (1, 0, 1): payload})
    source = TileSource(fetcher, max_zoom=5, cache_limit=2)
    try:
        for key in [(1, 0, 0), (1, 1, 0)]:
            with qtbot.waitSignal(source.tileLoadEnd, timeout=2000):
                source.ensure_tile(key)
        source.cached_tile((1, 0, 0))
        with qtbot.waitSignal(source.tileLoadEnd, timeout=2000):
            source.ensure_tile((1, 0, 1))

        assert source.cached_tile((1, 0, 0)) is not None
        assert source.cached_tile((1, 1, 0)) is None
    finally:
        source.shutdown()


def test_transport_failure_is_retried_on_next_request(qtbot, make_source) -> None:
    source, fetcher = make_source({(3, 2, 2): TileFetchError("HTTP 503")})
    with qtbot.waitSignal(source.tileLoadError, timeout=2000):
        source.get_tile(3, 2, 2)

    assert not source.is_tile_missing((3, 2, 2))
    fetcher._payloads[(3, 2, 2)] = _png_bytes()
    with qtbot.waitSignal(source.tileLoadEnd, timeout=2000):
        assert source.get_tile(3, 2, 2) is None

    assert fetcher.calls == [(3, 2, 2), (3, 2, 2)]
    assert source.cached_tile((3, 2, 2)) is not None


def test_repeated_transport_failures_mark_tile_missing(qtbot, qapp) -> None:
    fetcher = _FakeFetcher({(2, 0, 0): TileFetchError("timed out")})
    source = TileSource(fetcher, max_zoom=5, max_attempts=2)
    try:
        for _ in range(2):
            with qtbot.waitSignal(source.tileLoadError, timeout=2000):
                source.ensure_tile((2, 0, 0))

        assert source.is_tile_missing((2, 0, 0))
        with qtbot.assertNotEmitted(source.tileLoadStart):
            source.get_tile(2, 0, 0)
        assert len(fetcher.calls) == 2
    finally:
        source.shutdown()


def test_shutdown_closes_fetcher_and_ignores_new_requests(qtbot, make_source) -> None:
    source, fetcher = make_source({(0, 0, 0): _png_bytes()})

    source.shutdown()
    source.shutdown()

    assert fetcher.closed
    with qtbot.assertNotEmitted(source.tileLoadStart):
        source.get_tile(0, 0, 0)
