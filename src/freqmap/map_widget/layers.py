"""Layer objects making up the ordered stack drawn by :class:`MapView`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Union

from PySide6.QtCore import QObject, Signal

if TYPE_CHECKING:  # pragma: no cover - import for type checkers only
    from ..markers import Marker
    from .tile_source import TileSource


class TileLayer(QObject):
    """Raster layer drawing the tiles of a single tile source."""

    opacityChanged = Signal(float)

    def __init__(
        self,
        source: "TileSource",
        *,
        name: str,
        opacity: float = 1.0,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._source = source
        self._name = name
        self._opacity = max(0.0, min(1.0, float(opacity)))

    # ------------------------------------------------------------------
    @property
    def source(self) -> "TileSource":
        return self._source

    # ------------------------------------------------------------------
    @property
    def name(self) -> str:
        return self._name

    # ------------------------------------------------------------------
    @property
    def opacity(self) -> float:
        return self._opacity

    # ------------------------------------------------------------------
    def set_opacity(self, opacity: float) -> None:
        """Clamp *opacity* to ``[0, 1]`` and notify listeners on change."""

        opacity = max(0.0, min(1.0, float(opacity)))
        if opacity == self._opacity:
            return
        self._opacity = opacity
        self.opacityChanged.emit(opacity)

    # ------------------------------------------------------------------
    def __repr__(self) -> str:
        return f"TileLayer(name={self._name!r}, opacity={self._opacity})"


class VectorSource(QObject):
    """Ordered collection of marker features supporting bulk clear."""

    featuresChanged = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._features: list["Marker"] = []

    # ------------------------------------------------------------------
    def clear(self) -> None:
        """Remove every feature."""

        if not self._features:
            return
        self._features.clear()
        self.featuresChanged.emit()

    # ------------------------------------------------------------------
    def add_feature(self, feature: "Marker") -> None:
        """Append *feature* after the existing features."""

        self._features.append(feature)
        self.featuresChanged.emit()

    # ------------------------------------------------------------------
    def add_features(self, features: Iterable["Marker"]) -> None:
        """Append *features* in order with a single change notification."""

        before = len(self._features)
        self._features.extend(features)
        if len(self._features) != before:
            self.featuresChanged.emit()

    # ------------------------------------------------------------------
    def features(self) -> list["Marker"]:
        """Return a snapshot of the current features."""

        return list(self._features)

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator["Marker"]:
        return iter(list(self._features))


class VectorLayer(QObject):
    """Layer drawing the markers held by a :class:`VectorSource`."""

    def __init__(self, source: VectorSource, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._source = source

    @property
    def source(self) -> VectorSource:
        return self._source


MapLayer = Union[TileLayer, VectorLayer]


class LayerCollection(QObject):
    """Bottom-to-top ordered layer stack; index ``0`` is the base position."""

    changed = Signal()

    def __init__(self, layers: Iterable[MapLayer] = (), parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._layers: list[MapLayer] = list(layers)

    # ------------------------------------------------------------------
    def append(self, layer: MapLayer) -> None:
        """Stack *layer* on top of every existing layer."""

        self._layers.append(layer)
        self.changed.emit()

    # ------------------------------------------------------------------
    def insert_at(self, index: int, layer: MapLayer) -> None:
        """Insert *layer* at *index*, shifting later layers up."""

        self._layers.insert(index, layer)
        self.changed.emit()

    # ------------------------------------------------------------------
    def remove(self, layer: MapLayer) -> bool:
        """Remove *layer*; return ``False`` when it is not part of the stack."""

        index = self.index_of(layer)
        if index < 0:
            return False
        del self._layers[index]
        self.changed.emit()
        return True

    # ------------------------------------------------------------------
    def remove_at(self, index: int) -> MapLayer:
        """Remove and return the layer at *index*."""

        layer = self._layers.pop(index)
        self.changed.emit()
        return layer

    # ------------------------------------------------------------------
    def move(self, layer: MapLayer, index: int) -> None:
        """Relocate *layer* to *index* as a single stack change."""

        current = self.index_of(layer)
        if current < 0:
            raise ValueError(f"{layer!r} is not part of the layer stack")
        if current == index:
            return
        del self._layers[current]
        self._layers.insert(index, layer)
        self.changed.emit()

    # ------------------------------------------------------------------
    def item_at(self, index: int) -> Optional[MapLayer]:
        if 0 <= index < len(self._layers):
            return self._layers[index]
        return None

    # ------------------------------------------------------------------
    def index_of(self, layer: MapLayer) -> int:
        for index, candidate in enumerate(self._layers):
            if candidate is layer:
                return index
        return -1

    # ------------------------------------------------------------------
    def tile_layers(self) -> list[TileLayer]:
        return [layer for layer in self._layers if isinstance(layer, TileLayer)]

    # ------------------------------------------------------------------
    def vector_layers(self) -> list[VectorLayer]:
        return [layer for layer in self._layers if isinstance(layer, VectorLayer)]

    # ------------------------------------------------------------------
    def to_list(self) -> list[MapLayer]:
        return list(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[MapLayer]:
        return iter(list(self._layers))


__all__ = ["LayerCollection", "MapLayer", "TileLayer", "VectorLayer", "VectorSource"]
