"""Pie-chart marker icons rendered as self-contained SVG documents.

Each icon is a background disk with a wedge covering ``frequency * 360``
degrees, measured clockwise from 12 o'clock.  Output depends only on the
frequency value so identical inputs yield byte-identical SVG, which lets the
renderer cache rasterised images and keeps visual regression baselines stable.
"""

from __future__ import annotations

import base64
import logging
import math
from collections import OrderedDict
from dataclasses import dataclass

from PySide6.QtCore import QByteArray, Qt
from PySide6.QtGui import QImage, QPainter
from PySide6.QtSvg import QSvgRenderer

from .config import ICON_BACKGROUND_COLOR, ICON_SIZE, ICON_WEDGE_COLOR

LOGGER = logging.getLogger(__name__)


def coerce_frequency(value: object) -> float:
    """Return *value* as a float in ``[0, 1]``, falling back to ``0``.

    Anything that is not a finite real number inside the unit interval is
    logged and replaced by zero so the caller still receives a usable icon.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        LOGGER.warning("Invalid frequency value: %r", value)
        return 0.0
    frequency = float(value)
    if not math.isfinite(frequency) or frequency < 0.0 or frequency > 1.0:
        LOGGER.warning("Invalid frequency value: %r", value)
        return 0.0
    return frequency


def _fmt(value: float) -> str:
    """Format a coordinate with fixed precision and no trailing zeros."""

    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _build_svg(frequency: float, size: int, background: str, wedge: str) -> bytes:
    radius = size / 2.0
    r = _fmt(radius)
    if frequency >= 1.0:
        # Start and end points coincide for a full sweep, which SVG renderers
        # treat as an empty arc.
        shape = f'<circle r="{r}" cx="{r}" cy="{r}" fill="{wedge}"/>'
    else:
        theta = math.radians(frequency * 360.0)
        x = radius + radius * math.sin(theta)
        y = radius - radius * math.cos(theta)
        large_arc = 1 if frequency > 0.5 else 0
        shape = (
            f'<path d="M{r},{r} L{r},0 A{r},{r} 0 {large_arc},1 {_fmt(x)},{_fmt(y)} Z"'
            f' fill="{wedge}"/>'
        )
    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{size}" height="{size}"'
        f' viewBox="0 0 {size} {size}">'
        f'<circle r="{r}" cx="{r}" cy="{r}" fill="{background}"/>'
        f"{shape}</svg>"
    )
    return svg.encode("utf-8")


def render_pie_svg(
    frequency: object,
    *,
    size: int = ICON_SIZE,
    background: str = ICON_BACKGROUND_COLOR,
    wedge: str = ICON_WEDGE_COLOR,
) -> bytes:
    """Return the SVG bytes of the pie icon for *frequency*."""

    return _build_svg(coerce_frequency(frequency), size, background, wedge)


def pie_icon_data_uri(frequency: object) -> str:
    """Return the pie icon for *frequency* as a base64 ``data:`` URI."""

    value = coerce_frequency(frequency)
    svg = _build_svg(value, ICON_SIZE, ICON_BACKGROUND_COLOR, ICON_WEDGE_COLOR)
    return PieIcon(value, svg).data_uri


@dataclass(frozen=True)
class PieIcon:
    """A rendered pie icon together with the frequency it encodes."""

    frequency: float
    svg: bytes

    @property
    def data_uri(self) -> str:
        """Return the SVG as a directly displayable ``data:`` URI."""

        encoded = base64.b64encode(self.svg).decode("ascii")
        return f"data:image/svg+xml;base64,{encoded}"

    def to_image(self, size: int) -> QImage:
        """Rasterise the SVG into a transparent ``size`` x ``size`` image."""

        image = QImage(size, size, QImage.Format.Format_ARGB32_Premultiplied)
        image.fill(Qt.GlobalColor.transparent)
        renderer = QSvgRenderer(QByteArray(self.svg))
        painter = QPainter(image)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            renderer.render(painter)
        finally:
            painter.end()
        return image


class IconRenderer:
    """Render pie icons and cache their rasterised images."""

    def __init__(
        self,
        *,
        size: int = ICON_SIZE,
        background: str = ICON_BACKGROUND_COLOR,
        wedge: str = ICON_WEDGE_COLOR,
        cache_limit: int = 1024,
    ) -> None:
        self._size = size
        self._background = background
        self._wedge = wedge
        self._cache_limit = cache_limit
        self._images: OrderedDict[tuple[float, int], QImage] = OrderedDict()

    # ------------------------------------------------------------------
    @property
    def size(self) -> int:
        """Canonical icon size in logical pixels."""

        return self._size

    # ------------------------------------------------------------------
    def render(self, frequency: object) -> PieIcon:
        """Return the pie icon for *frequency*; invalid input yields the empty pie."""

        value = coerce_frequency(frequency)
        return PieIcon(value, _build_svg(value, self._size, self._background, self._wedge))

    # ------------------------------------------------------------------
    def image(self, icon: PieIcon, size: int | None = None) -> QImage:
        """Return the cached raster of *icon* at *size* pixels."""

        pixel_size = int(size or self._size)
        key = (icon.frequency, pixel_size)
        image = self._images.get(key)
        if image is not None:
            self._images.move_to_end(key)
            return image

        image = icon.to_image(pixel_size)
        self._images[key] = image
        while len(self._images) > self._cache_limit:
            self._images.popitem(last=False)
        return image


__all__ = [
    "IconRenderer",
    "PieIcon",
    "coerce_frequency",
    "pie_icon_data_uri",
    "render_pie_svg",
]
