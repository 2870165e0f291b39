"""Tests for the layer stack and vector source."""

from __future__ import annotations

import pytest
from PySide6.QtTest import QSignalSpy

from conftest import ScriptedTileSource
from freqmap.map_widget.layers import LayerCollection, TileLayer, VectorLayer, VectorSource


@pytest.fixture
def tile_layer(qapp) -> TileLayer:
    return TileLayer(ScriptedTileSource(), name="Base")


def test_opacity_is_clamped_and_signalled(tile_layer: TileLayer) -> None:
    spy = QSignalSpy(tile_layer.opacityChanged)

    tile_layer.set_opacity(1.5)
    tile_layer.set_opacity(0.0)
    tile_layer.set_opacity(-3)

    assert tile_layer.opacity == 0.0
    assert spy.count() == 1


def test_empty_collections_are_falsy_but_exist(qapp) -> None:
    source = VectorSource()
    layers = LayerCollection()

    assert len(source) == 0 and not source
    assert len(layers) == 0 and not layers


def test_vector_source_batches_notifications(qapp) -> None:
    source = VectorSource()
    spy = QSignalSpy(source.featuresChanged)

    source.add_features(["a", "b"])
    source.add_features([])
    source.add_feature("c")
    source.clear()
    source.clear()

    assert spy.count() == 3
    assert source.features() == []


def test_collection_ordering_operations(qapp, tile_layer: TileLayer) -> None:
    other = TileLayer(ScriptedTileSource(), name="Other")
    vector = VectorLayer(VectorSource())
    layers = LayerCollection([tile_layer, vector])
    spy = QSignalSpy(layers.changed)

    layers.append(other)
    layers.move(other, 0)

    assert layers.to_list() == [other, tile_layer, vector]
    assert layers.item_at(0) is other
    assert layers.item_at(7) is None
    assert layers.tile_layers() == [other, tile_layer]
    assert layers.vector_layers() == [vector]
    assert spy.count() == 2

    assert layers.remove(tile_layer) is True
    assert layers.remove(tile_layer) is False
    assert layers.index_of(tile_layer) == -1
    assert layers.remove_at(0) is other
    assert layers.to_list() == [vector]


def test_move_rejects_unknown_layer(qapp, tile_layer: TileLayer) -> None:
    with pytest.raises(ValueError):
        LayerCollection().move(tile_layer, 0)
