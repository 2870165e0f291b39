"""Hover tooltips for frequency markers."""

from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Optional, Protocol

from PySide6.QtCore import QObject, QPointF

from ..icon_renderer import IconRenderer
from .overlay import TooltipOverlay

LOGGER = logging.getLogger(__name__)

if TYPE_CHECKING:  # pragma: no cover - import for type checkers only
    from ..markers import Marker


class SupportsHitTest(Protocol):
    """Map interface used by :class:`TooltipController`."""

    pointerMoved: object

    def hit_test(self, pixel: QPointF) -> Optional["Marker"]:  # pragma: no cover
        ...


def format_tooltip_html(marker: "Marker") -> str:
    """Return the rich-text body describing *marker*."""

    return (
        '<div style="text-align: center">'
        f"<b>{html.escape(marker.country)}</b><br/>"
        f"{html.escape(marker.admin_region)}<br/>"
        "<hr/>"
        f"<b>Frequency:</b> {marker.frequency:.3f}<br/>"
        f"<b>Gene:</b> {html.escape(marker.gene)}"
        "</div>"
    )


class TooltipController(QObject):
    """Show the overlay for the marker under the pointer, hide it elsewhere."""

    def __init__(
        self,
        map_view: SupportsHitTest,
        overlay: TooltipOverlay,
        *,
        icon_renderer: IconRenderer | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._map = map_view
        self._overlay = overlay
        self._icons = icon_renderer or IconRenderer()
        self._connected = False
        self.attach()

    # ------------------------------------------------------------------
    def attach(self) -> None:
        if self._connected:
            return
        self._map.pointerMoved.connect(self.handle_pointer_move)
        self._connected = True

    # ------------------------------------------------------------------
    def detach(self) -> None:
        """Stop reacting to pointer movement and hide the overlay."""

        if self._connected:
            try:
                self._map.pointerMoved.disconnect(self.handle_pointer_move)
            except (RuntimeError, TypeError) as exc:
                LOGGER.debug("Pointer listener already detached: %s", exc)
            self._connected = False
        self._overlay.set_position(None)

    # ------------------------------------------------------------------
    def handle_pointer_move(self, pixel: QPointF, coordinate: object) -> Optional["Marker"]:
        """Update the overlay for a pointer at *pixel*; return the hovered marker."""

        marker = self._map.hit_test(pixel)
        if marker is None:
            self._overlay.set_position(None)
            return None

        self._overlay.set_content(format_tooltip_html(marker), self._icons.image(marker.icon))
        self._overlay.set_position(coordinate)
        return marker


__all__ = ["SupportsHitTest", "TooltipController", "format_tooltip_html"]
