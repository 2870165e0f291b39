"""Completion handle for asynchronous map operations driven by the Qt event loop."""

from __future__ import annotations

from typing import Any, Callable

from PySide6.QtCore import QObject, Signal

_UNSET = object()


class PendingOperation(QObject):
    """Resolve-once result holder used in place of a future.

    Map operations that wait for tiles or timers return one of these.  Callers
    either connect to :attr:`finished` or register a callback with
    :meth:`add_done_callback`; callbacks added after resolution run at once.
    """

    finished = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._result: Any = _UNSET
        self._callbacks: list[Callable[[Any], None]] = []

    # ------------------------------------------------------------------
    @classmethod
    def resolved(cls, value: Any = None, parent: QObject | None = None) -> "PendingOperation":
        """Return an operation that already finished with *value*."""

        operation = cls(parent)
        operation.resolve(value)
        return operation

    # ------------------------------------------------------------------
    def done(self) -> bool:
        return self._result is not _UNSET

    # ------------------------------------------------------------------
    def result(self) -> Any:
        """Return the resolved value; raises while the operation is pending."""

        if self._result is _UNSET:
            raise RuntimeError("Operation has not finished yet")
        return self._result

    # ------------------------------------------------------------------
    def add_done_callback(self, callback: Callable[[Any], None]) -> None:
        if self.done():
            callback(self._result)
            return
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    def resolve(self, value: Any = None) -> bool:
        """Store *value* and notify listeners; later calls are ignored."""

        if self.done():
            return False
        self._result = value
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(value)
        self.finished.emit(value)
        return True


__all__ = ["PendingOperation"]
