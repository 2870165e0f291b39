"""Wait until the tiles covering a viewport have loaded.

A tile source never announces how many tiles a view needs, so the wait
counts ``tileLoadStart`` against ``tileLoadEnd``/``tileLoadError`` events and
treats the set as complete once every started tile settled.  Two timers bound
the wait: a short grace window resolves views whose tiles are all cached
(they emit no events at all) and a hard timeout keeps a stalled network from
blocking the caller.  Failed tiles count as settled; the wait never fails.
A wait stopped through :meth:`TileLoadMonitor.cancel_all` resolves as
cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from PySide6.QtCore import QObject, QTimer

from ..config import TILE_LOAD_GRACE_MS, TILE_LOAD_TIMEOUT_MS
from .pending import PendingOperation
from .viewport import TileGrid, ViewState

LOGGER = logging.getLogger(__name__)


class ObservableTileSource(Protocol):
    """Tile source interface the monitor relies on."""

    tileLoadStart: Any
    tileLoadEnd: Any
    tileLoadError: Any

    @property
    def tile_grid(self) -> TileGrid:  # pragma: no cover - interface definition only
        ...

    def get_tile(self, z: int, x: int, y: int) -> Optional[object]:  # pragma: no cover
        ...


class WaitState(str, Enum):
    """Lifecycle of a single tile wait."""

    IDLE = "idle"
    WAITING = "waiting"
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"
    QUIET = "quiet"
    CANCELLED = "cancelled"


@dataclass
class TileLoadSession:
    """Counters of one wait; only meaningful while it is running."""

    loading: int = 0
    loaded: int = 0
    started: bool = False

    def is_complete(self) -> bool:
        # ``loading > 0`` rejects the trivial 0 >= 0 reading taken before any
        # request was issued.
        return self.started and self.loaded >= self.loading and self.loading > 0


class ListenerScope:
    """Signal connections that are released together."""

    def __init__(self) -> None:
        self._connections: list[tuple[Any, Callable[..., None]]] = []

    # ------------------------------------------------------------------
    def connect(self, signal: Any, slot: Callable[..., None]) -> None:
        signal.connect(slot)
        self._connections.append((signal, slot))

    # ------------------------------------------------------------------
    def release(self) -> None:
        """Disconnect every tracked slot, newest first."""

        while self._connections:
            signal, slot = self._connections.pop()
            try:
                signal.disconnect(slot)
            except (RuntimeError, TypeError) as exc:
                # The sender may already be gone when its owner was torn down.
                LOGGER.debug("Listener already detached: %s", exc)

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._connections)


class _TileWait(QObject):
    """State machine for a single :meth:`TileLoadMonitor.wait` call."""

    def __init__(
        self,
        source: ObservableTileSource,
        view_state: ViewState,
        operation: PendingOperation,
        *,
        grace_ms: int,
        timeout_ms: int,
        on_finished: Callable[["_TileWait"], None],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.session = TileLoadSession()
        self.state = WaitState.IDLE
        self._source = source
        self._view_state = view_state
        self._operation = operation
        self._on_finished = on_finished
        self._listeners = ListenerScope()

        self._grace_timer = QTimer(self)
        self._grace_timer.setSingleShot(True)
        self._grace_timer.setInterval(grace_ms)
        self._grace_timer.timeout.connect(self._on_grace_elapsed)

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setSingleShot(True)
        self._timeout_timer.setInterval(timeout_ms)
        self._timeout_timer.timeout.connect(self._on_timeout)

    # ------------------------------------------------------------------
    def start(self) -> None:
        """Attach observers, arm the timers and provoke tile requests."""

        self.state = WaitState.WAITING
        self._listeners.connect(self._source.tileLoadStart, self._on_load_start)
        self._listeners.connect(self._source.tileLoadEnd, self._on_load_settled)
        # An errored tile is settled too, otherwise one failed request would
        # hold the wait until the timeout.
        self._listeners.connect(self._source.tileLoadError, self._on_load_settled)
        self._grace_timer.start()
        self._timeout_timer.start()

        try:
            self._request_visible_tiles()
        except Exception:
            LOGGER.exception("Unable to request the tiles of the current viewport")

    # ------------------------------------------------------------------
    def _request_visible_tiles(self) -> None:
        """Ask the source for every tile covering the viewport.

        Without this, tiles outside the drawn area or a layer that is not
        painted yet would never emit lifecycle events.
        """

        source = self._source
        extent = self._view_state.extent()
        count = source.tile_grid.for_each_tile_coord(
            extent,
            self._view_state.resolution,
            lambda coord: source.get_tile(*coord),
        )
        LOGGER.debug("Requested %s tiles for the current viewport", count)

    # ------------------------------------------------------------------
    def _on_load_start(self, *_args: object) -> None:
        if self.state is not WaitState.WAITING:
            return
        self.session.loading += 1
        self.session.started = True

    # ------------------------------------------------------------------
    def _on_load_settled(self, *_args: object) -> None:
        if self.state is not WaitState.WAITING:
            return
        self.session.loaded += 1
        if self.session.is_complete():
            self._finish(WaitState.SATISFIED)

    # ------------------------------------------------------------------
    def _on_grace_elapsed(self) -> None:
        if self.state is WaitState.WAITING and not self.session.started:
            self._finish(WaitState.QUIET)

    # ------------------------------------------------------------------
    def _on_timeout(self) -> None:
        if self.state is WaitState.WAITING:
            self._finish(WaitState.TIMED_OUT)

    # ------------------------------------------------------------------
    def _finish(self, state: WaitState) -> None:
        """Release listeners and timers, then resolve the pending operation."""

        if self.state is not WaitState.WAITING:
            return
        self.state = state
        try:
            self._listeners.release()
            self._grace_timer.stop()
            self._timeout_timer.stop()
        finally:
            LOGGER.debug(
                "Tile wait finished as %s (%d/%d tiles)",
                state.value,
                self.session.loaded,
                self.session.loading,
            )
            self._on_finished(self)
            self._operation.resolve(state)

    # ------------------------------------------------------------------
    @property
    def source(self) -> ObservableTileSource:
        return self._source

    # ------------------------------------------------------------------
    def cancel(self) -> None:
        if self.state is WaitState.WAITING:
            self._finish(WaitState.CANCELLED)

    # ------------------------------------------------------------------
    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class TileLoadMonitor(QObject):
    """Resolve when a viewport's tiles finished loading, or after a timeout."""

    def __init__(
        self,
        *,
        grace_ms: int = TILE_LOAD_GRACE_MS,
        timeout_ms: int = TILE_LOAD_TIMEOUT_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._grace_ms = grace_ms
        self._timeout_ms = timeout_ms
        self._waits: set[_TileWait] = set()

    # ------------------------------------------------------------------
    @property
    def active_waits(self) -> int:
        """Number of waits that have not resolved yet."""

        return len(self._waits)

    # ------------------------------------------------------------------
    def wait(self, source: ObservableTileSource, view_state: ViewState) -> PendingOperation:
        """Start waiting for *source*; the operation resolves with a :class:`WaitState`."""

        operation = PendingOperation()
        tile_wait = _TileWait(
            source,
            view_state,
            operation,
            grace_ms=self._grace_ms,
            timeout_ms=self._timeout_ms,
            on_finished=self._forget,
            parent=self,
        )
        self._waits.add(tile_wait)
        tile_wait.start()
        return operation

    # ------------------------------------------------------------------
    def cancel_all(self) -> int:
        """Stop every running wait; each resolves with :attr:`WaitState.CANCELLED`."""

        waits = list(self._waits)
        for tile_wait in waits:
            tile_wait.cancel()
        return len(waits)

    # ------------------------------------------------------------------
    def cancel_source(self, source: ObservableTileSource) -> int:
        """Stop the running waits that observe *source*."""

        waits = [tile_wait for tile_wait in self._waits if tile_wait.source is source]
        for tile_wait in waits:
            tile_wait.cancel()
        return len(waits)

    # ------------------------------------------------------------------
    def _forget(self, tile_wait: _TileWait) -> None:
        self._waits.discard(tile_wait)
        tile_wait.deleteLater()


__all__ = [
    "ListenerScope",
    "ObservableTileSource",
    "TileLoadMonitor",
    "TileLoadSession",
    "WaitState",
]
