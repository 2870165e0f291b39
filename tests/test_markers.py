"""Tests for marker building and the marker store."""

from __future__ import annotations

import logging

import pytest

from freqmap.map_widget.layers import VectorSource
from freqmap.markers import MarkerBuilder, MarkerStore
from freqmap.projection import from_lonlat
from freqmap.records import ALLELE_FREQUENCY_FIELDS


class _AnchorSpy:
    def __init__(self) -> None:
        self.positions: list[object] = []

    def set_position(self, coordinate: object) -> None:
        self.positions.append(coordinate)


@pytest.fixture
def surface(qapp) -> VectorSource:
    return VectorSource()


def test_build_projects_coordinates_and_fills_defaults() -> None:
    marker = MarkerBuilder().build(
        {"gene": "BRCA1", "frequency": "0.4", "longitude": "10", "latitude": 20}
    )

    assert marker is not None
    assert marker.position == pytest.approx(from_lonlat(10, 20))
    assert (marker.longitude, marker.latitude) == (10.0, 20.0)
    assert marker.frequency == pytest.approx(0.4)
    assert marker.country == "Unknown"
    assert marker.admin_region == "Unknown"
    assert marker.icon.frequency == pytest.approx(0.4)


def test_build_keeps_out_of_range_frequency_but_draws_empty_pie() -> None:
    marker = MarkerBuilder().build({"gene": "X", "frequency": 1.7, "longitude": 0, "latitude": 0})

    assert marker is not None
    assert marker.frequency == pytest.approx(1.7)
    assert marker.icon.frequency == 0.0


@pytest.mark.parametrize(
    "record",
    [
        {"gene": "X", "frequency": "abc", "longitude": 0, "latitude": 0},
        {"gene": "X", "frequency": 0.2, "longitude": None, "latitude": 0},
        {"gene": "X", "frequency": 0.2, "longitude": 0},
        {"gene": "X", "frequency": 0.2, "longitude": 0, "latitude": "nan"},
    ],
)
def test_build_rejects_invalid_numbers(record: dict, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="freqmap.markers"):
        assert MarkerBuilder().build(record) is None

    assert "Invalid data for feature" in caplog.text


def test_build_reads_configured_frequency_field() -> None:
    builder = MarkerBuilder(field_config=ALLELE_FREQUENCY_FIELDS)

    marker = builder.build(
        {"gene": "X", "average_allele_frequency": 0.3, "frequency": 0.9, "longitude": 0, "latitude": 0}
    )

    assert marker is not None
    assert marker.frequency == pytest.approx(0.3)


def test_add_all_preserves_input_order_and_skips_invalid(surface: VectorSource, sample_records) -> None:
    records = sample_records[:2] + [{"gene": "BAD", "frequency": "x", "longitude": 0, "latitude": 0}]
    store = MarkerStore(surface)

    assert store.add_all(records) == 2
    assert [marker.country for marker in store.markers()] == ["France", "United Kingdom"]
    assert len(store) == 2


def test_filter_is_never_cumulative(surface: VectorSource, sample_records) -> None:
    store = MarkerStore(surface)
    store.add_all(sample_records)

    assert store.filter_by_gene("TP53") == 2
    assert store.filter_by_gene("BRCA1") == 3
    assert {marker.gene for marker in store.markers()} == {"BRCA1"}
    assert store.filter_by_gene("Unknown gene") == 0
    assert len(surface) == 0


def test_filter_clears_tooltip_anchor(surface: VectorSource, sample_records) -> None:
    anchor = _AnchorSpy()
    store = MarkerStore(surface, overlay=anchor)
    store.add_all(sample_records)

    store.filter_by_gene("TP53")

    assert anchor.positions == [None]


def test_filter_uses_exact_gene_match(surface: VectorSource, sample_records) -> None:
    store = MarkerStore(surface)
    store.add_all(sample_records)

    assert store.filter_by_gene("brca1") == 0
    assert store.filter_by_gene("TP5") == 0


def test_filter_without_gene_is_a_noop(surface: VectorSource, sample_records, caplog) -> None:
    anchor = _AnchorSpy()
    store = MarkerStore(surface, overlay=anchor)
    store.add_all(sample_records)

    with caplog.at_level(logging.WARNING, logger="freqmap.markers"):
        assert store.filter_by_gene("") is None

    assert "Gene parameter is required" in caplog.text
    assert len(store) == 5
    assert anchor.positions == []


def test_filter_without_records_is_a_noop(surface: VectorSource, caplog) -> None:
    store = MarkerStore(surface)

    with caplog.at_level(logging.WARNING, logger="freqmap.markers"):
        assert store.filter_by_gene("TP53") is None

    assert "Vector source or features not available" in caplog.text


def test_filter_accepts_explicit_records(surface: VectorSource, sample_records) -> None:
    store = MarkerStore(surface)

    assert store.filter_by_gene("BRCA1", sample_records) == 3
    assert store.records is None


def test_genes_come_from_backing_records(surface: VectorSource, sample_records) -> None:
    store = MarkerStore(surface)
    assert store.genes() == []

    store.add_all(sample_records)
    store.filter_by_gene("TP53")

    assert store.genes() == ["BRCA1", "TP53"]
