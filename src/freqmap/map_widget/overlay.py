"""Tooltip overlay widget anchored at a map coordinate."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QPoint, Qt, Signal
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QWidget

from ..config import OVERLAY_OFFSET


class TooltipOverlay(QFrame):
    """Small floating panel shown above a marker.

    The overlay only stores its anchor in map coordinates; the owning
    :class:`~freqmap.map_widget.map_view.MapView` listens to
    :attr:`anchorChanged` and moves the widget so that its bottom centre sits
    at the anchor plus :attr:`offset`.  A ``None`` anchor hides the panel.
    """

    anchorChanged = Signal()

    def __init__(
        self,
        parent: QWidget | None = None,
        *,
        offset: tuple[int, int] = OVERLAY_OFFSET,
    ) -> None:
        super().__init__(parent)
        self._position: Optional[tuple[float, float]] = None
        self._offset = QPoint(*offset)

        self.setObjectName("freqmapTooltip")
        self.setFrameShape(QFrame.StyledPanel)
        self.setAttribute(Qt.WA_TransparentForMouseEvents, True)
        self.setStyleSheet(
            "#freqmapTooltip { background-color: rgba(255, 255, 255, 235);"
            " border: 1px solid #8a8a8a; border-radius: 4px; }"
        )

        self._icon_label = QLabel(self)
        self._text_label = QLabel(self)
        self._text_label.setTextFormat(Qt.RichText)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(6, 4, 6, 4)
        layout.setSpacing(6)
        layout.addWidget(self._icon_label)
        layout.addWidget(self._text_label)

        self.hide()

    # ------------------------------------------------------------------
    @property
    def offset(self) -> QPoint:
        return QPoint(self._offset)

    # ------------------------------------------------------------------
    def position(self) -> Optional[tuple[float, float]]:
        """Return the anchor coordinate, ``None`` while hidden."""

        return self._position

    # ------------------------------------------------------------------
    def set_position(self, coordinate: Optional[tuple[float, float]]) -> None:
        """Anchor the overlay at *coordinate* or hide it for ``None``."""

        if coordinate is not None:
            coordinate = (float(coordinate[0]), float(coordinate[1]))
        if coordinate == self._position:
            return
        self._position = coordinate
        if coordinate is None:
            self.hide()
        self.anchorChanged.emit()

    # ------------------------------------------------------------------
    def set_content(self, html: str, icon: QImage | None = None) -> None:
        """Replace the panel content with rich text *html* and an optional icon."""

        self._text_label.setText(html)
        if icon is None or icon.isNull():
            self._icon_label.clear()
            self._icon_label.hide()
        else:
            self._icon_label.setPixmap(QPixmap.fromImage(icon))
            self._icon_label.show()
        self.adjustSize()

    # ------------------------------------------------------------------
    def text(self) -> str:
        return self._text_label.text()

    # ------------------------------------------------------------------
    def place_at(self, anchor: QPoint) -> None:
        """Move so the bottom centre sits at *anchor* shifted by :attr:`offset`."""

        self.adjustSize()
        target = anchor + self._offset
        self.move(target.x() - self.width() // 2, target.y() - self.height())
        self.show()
        self.raise_()


__all__ = ["TooltipOverlay"]
