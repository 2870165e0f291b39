"""Turn raw frequency records into pie-chart markers on a vector source."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import UNKNOWN_LABEL
from .icon_renderer import IconRenderer, PieIcon
from .map_widget.layers import VectorSource
from .projection import from_lonlat
from .records import FieldConfig, FrequencyRecord, parse_number, unique_genes

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Marker:
    """A validated record projected into map space with its pie icon."""

    position: tuple[float, float]
    longitude: float
    latitude: float
    frequency: float
    gene: str
    country: str
    admin_region: str
    icon: PieIcon


class SupportsAnchor(Protocol):
    """Overlay interface used to drop a tooltip that would point at a removed marker."""

    def set_position(self, coordinate: Optional[tuple[float, float]]) -> None:  # pragma: no cover
        ...


def _label(value: object) -> str:
    if value is None:
        return UNKNOWN_LABEL
    text = str(value).strip()
    return text or UNKNOWN_LABEL


class MarkerBuilder:
    """Validate records and build :class:`Marker` instances."""

    def __init__(
        self,
        icon_renderer: IconRenderer | None = None,
        field_config: FieldConfig | None = None,
    ) -> None:
        self._icons = icon_renderer or IconRenderer()
        self._fields = field_config or FieldConfig()

    # ------------------------------------------------------------------
    @property
    def field_config(self) -> FieldConfig:
        return self._fields

    # ------------------------------------------------------------------
    def build(self, record: FrequencyRecord) -> Marker | None:
        """Return a marker for *record*, or ``None`` when a numeric field is invalid."""

        if not isinstance(record, Mapping):
            LOGGER.warning("Invalid data for feature: %r", record)
            return None

        fields = self._fields
        frequency = parse_number(record.get(fields.frequency_field))
        longitude = parse_number(record.get(fields.longitude_field))
        latitude = parse_number(record.get(fields.latitude_field))
        if frequency is None or longitude is None or latitude is None:
            LOGGER.warning("Invalid data for feature: %r", dict(record))
            return None

        # Out-of-range frequencies are kept as-is; the icon renderer falls
        # back to the empty pie for them.
        return Marker(
            position=from_lonlat(longitude, latitude),
            longitude=longitude,
            latitude=latitude,
            frequency=frequency,
            gene=_label(record.get(fields.gene_field)),
            country=_label(record.get(fields.country_field)),
            admin_region=_label(record.get(fields.region_field)),
            icon=self._icons.render(frequency),
        )

    # ------------------------------------------------------------------
    def build_all(self, records: Iterable[FrequencyRecord]) -> list[Marker]:
        """Build markers for *records*, skipping invalid ones, in input order."""

        markers: list[Marker] = []
        for record in records:
            marker = self.build(record)
            if marker is not None:
                markers.append(marker)
        return markers


class MarkerStore:
    """Own the markers currently shown on a :class:`VectorSource`.

    The store remembers the full record set from :meth:`add_all` so that
    :meth:`filter_by_gene` always narrows the complete data rather than the
    currently visible subset.
    """

    def __init__(
        self,
        surface: VectorSource,
        builder: MarkerBuilder | None = None,
        *,
        overlay: SupportsAnchor | None = None,
    ) -> None:
        self._surface = surface
        self._builder = builder or MarkerBuilder()
        self._overlay = overlay
        self._records: list[FrequencyRecord] | None = None

    # ------------------------------------------------------------------
    @property
    def records(self) -> list[FrequencyRecord] | None:
        """The backing record set, or ``None`` before :meth:`add_all`."""

        return None if self._records is None else list(self._records)

    # ------------------------------------------------------------------
    def set_overlay(self, overlay: SupportsAnchor | None) -> None:
        self._overlay = overlay

    # ------------------------------------------------------------------
    def add_all(self, records: Sequence[FrequencyRecord]) -> int:
        """Replace the surface content with a marker for every valid record."""

        self._records = list(records)
        self._surface.clear()
        markers = self._builder.build_all(self._records)
        self._surface.add_features(markers)
        LOGGER.debug("Rendered %d of %d records", len(markers), len(self._records))
        return len(markers)

    # ------------------------------------------------------------------
    def filter_by_gene(
        self,
        gene: str,
        records: Sequence[FrequencyRecord] | None = None,
    ) -> int | None:
        """Show only the markers of *gene*; return the count or ``None`` on no-op."""

        if not gene:
            LOGGER.warning("Gene parameter is required")
            return None

        source_records = list(records) if records is not None else self._records
        if source_records is None:
            LOGGER.warning("Vector source or features not available")
            return None

        if self._overlay is not None:
            self._overlay.set_position(None)
        self._surface.clear()

        gene_field = self._builder.field_config.gene_field
        matching = [
            record
            for record in source_records
            if isinstance(record, Mapping) and record.get(gene_field) == gene
        ]
        markers = self._builder.build_all(matching)
        self._surface.add_features(markers)
        LOGGER.debug("Filtered to %d markers for gene %s", len(markers), gene)
        return len(markers)

    # ------------------------------------------------------------------
    def markers(self) -> list[Marker]:
        return self._surface.features()

    # ------------------------------------------------------------------
    def genes(self) -> list[str]:
        """Return the distinct genes of the backing record set."""

        if self._records is None:
            return []
        return unique_genes(self._records, self._builder.field_config)

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._surface)


__all__ = ["Marker", "MarkerBuilder", "MarkerStore", "SupportsAnchor"]
