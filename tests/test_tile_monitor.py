"""Tests for the viewport tile wait."""

from __future__ import annotations

from typing import Callable

from conftest import ScriptedTileSource
from freqmap.map_widget.tile_monitor import ListenerScope, TileLoadMonitor, TileLoadSession, WaitState
from freqmap.map_widget.viewport import compute_view_state

# A 256x256 view at zoom 1 centred on the origin touches all four level-1 tiles.
VIEW = compute_view_state(0.0, 0.0, 1.0, 256, 256)
ALL_TILES = [(1, 0, 0), (1, 1, 0), (1, 0, 1), (1, 1, 1)]


class _FakeSignal:
    def __init__(self) -> None:
        self.slots: list[Callable[..., None]] = []

    def connect(self, slot: Callable[..., None]) -> None:
        self.slots.append(slot)

    def disconnect(self, slot: Callable[..., None]) -> None:
        self.slots.remove(slot)


def _resolved(operation) -> list[object]:
    results: list[object] = []
    operation.add_done_callback(results.append)
    return results


def test_session_requires_a_started_request() -> None:
    session = TileLoadSession()
    assert not session.is_complete()

    session.started, session.loading, session.loaded = True, 2, 1
    assert not session.is_complete()
    session.loaded = 2
    assert session.is_complete()


def test_wait_requests_every_visible_tile(qtbot, qapp) -> None:
    source = ScriptedTileSource()
    monitor = TileLoadMonitor(grace_ms=200, timeout_ms=2000)

    operation = monitor.wait(source, VIEW)
    qtbot.waitUntil(operation.done, timeout=1500)

    assert sorted(source.requested) == sorted(ALL_TILES)
    assert operation.result() is WaitState.SATISFIED


def test_fully_cached_view_resolves_quiet(qtbot, qapp) -> None:
    source = ScriptedTileSource(cached=ALL_TILES)
    monitor = TileLoadMonitor(grace_ms=50, timeout_ms=2000)

    operation = monitor.wait(source, VIEW)
    results = _resolved(operation)
    qtbot.waitUntil(operation.done, timeout=1000)

    assert results == [WaitState.QUIET]
    assert source.requested == []


def test_errors_count_as_settled(qtbot, qapp) -> None:
    source = ScriptedTileSource(fail=lambda key: key[1] == 1)
    monitor = TileLoadMonitor(grace_ms=200, timeout_ms=2000)

    operation = monitor.wait(source, VIEW)
    qtbot.waitUntil(operation.done, timeout=1500)

    assert operation.result() is WaitState.SATISFIED
    assert source.is_tile_missing((1, 1, 0))


def test_stalled_tiles_time_out(qtbot, qapp) -> None:
    source = ScriptedTileSource(delay_ms=5000)
    monitor = TileLoadMonitor(grace_ms=20, timeout_ms=100)

    operation = monitor.wait(source, VIEW)
    qtbot.waitUntil(operation.done, timeout=1000)

    assert operation.result() is WaitState.TIMED_OUT
    assert monitor.active_waits == 0


def test_wait_resolves_exactly_once(qtbot, qapp) -> None:
    source = ScriptedTileSource(delay_ms=5)
    monitor = TileLoadMonitor(grace_ms=20, timeout_ms=150)

    operation = monitor.wait(source, VIEW)
    results = _resolved(operation)
    # Let the grace and timeout windows pass after the tiles settled.
    qtbot.wait(250)

    assert results == [WaitState.SATISFIED]


def test_listeners_are_released_after_resolution(qtbot, qapp) -> None:
    source = ScriptedTileSource(delay_ms=5)
    monitor = TileLoadMonitor(grace_ms=50, timeout_ms=1000)

    operation = monitor.wait(source, VIEW)
    qtbot.waitUntil(operation.done, timeout=1000)

    # Late events from the source no longer reach the finished wait.
    with qtbot.assertNotEmitted(operation.finished):
        source.tileLoadStart.emit((1, 0, 0))
        source.tileLoadEnd.emit((1, 0, 0))
    assert monitor.active_waits == 0


def test_concurrent_waits_are_independent(qtbot, qapp) -> None:
    slow = ScriptedTileSource(delay_ms=5000)
    fast = ScriptedTileSource(cached=ALL_TILES)
    monitor = TileLoadMonitor(grace_ms=30, timeout_ms=300)

    slow_op = monitor.wait(slow, VIEW)
    fast_op = monitor.wait(fast, VIEW)
    assert monitor.active_waits == 2

    qtbot.waitUntil(fast_op.done, timeout=1000)
    assert not slow_op.done()
    qtbot.waitUntil(slow_op.done, timeout=1000)

    assert fast_op.result() is WaitState.QUIET
    assert slow_op.result() is WaitState.TIMED_OUT


def test_cancel_source_stops_only_matching_waits(qtbot, qapp) -> None:
    stalled = ScriptedTileSource(delay_ms=5000)
    other = ScriptedTileSource(delay_ms=5000)
    monitor = TileLoadMonitor(grace_ms=30, timeout_ms=300)
    stalled_op = monitor.wait(stalled, VIEW)
    other_op = monitor.wait(other, VIEW)

    assert monitor.cancel_source(stalled) == 1

    assert stalled_op.result() is WaitState.CANCELLED
    assert not other_op.done()
    qtbot.waitUntil(other_op.done, timeout=1000)
    assert other_op.result() is WaitState.TIMED_OUT


def test_cancel_all_resolves_running_waits_once(qtbot, qapp) -> None:
    source = ScriptedTileSource(delay_ms=5000)
    monitor = TileLoadMonitor(grace_ms=30, timeout_ms=300)
    operations = [monitor.wait(source, VIEW), monitor.wait(ScriptedTileSource(), VIEW)]
    results = [_resolved(operation) for operation in operations]

    assert monitor.cancel_all() == 2
    assert monitor.cancel_all() == 0

    assert results == [[WaitState.CANCELLED], [WaitState.CANCELLED]]
    assert monitor.active_waits == 0
    # Neither the timeout nor late tile events reach a cancelled wait.
    with qtbot.assertNotEmitted(operations[0].finished, wait=400):
        source.tileLoadEnd.emit((1, 0, 0))


def test_listener_scope_disconnects_everything() -> None:
    start, end = _FakeSignal(), _FakeSignal()
    scope = ListenerScope()

    scope.connect(start, print)
    scope.connect(end, print)
    assert len(scope) == 2

    scope.release()

    assert start.slots == [] and end.slots == []
    assert len(scope) == 0


def test_listener_scope_tolerates_dead_senders() -> None:
    signal = _FakeSignal()
    scope = ListenerScope()
    scope.connect(signal, print)
    signal.disconnect = _raise_runtime_error

    scope.release()

    assert len(scope) == 0


def _raise_runtime_error(_slot: Callable[..., None]) -> None:
    raise RuntimeError("Internal C++ object already deleted.")
