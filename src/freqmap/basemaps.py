"""Basemap catalog mapping layer names to tile endpoint configuration."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator, ValidationError

from .config import DEFAULT_MAX_ZOOM, STANDARD_ATTRIBUTION, STANDARD_TILE_TEMPLATE
from .errors import BasemapCatalogError


class LayerKind(str, Enum):
    """How a basemap's tile endpoint is described."""

    TILE_TEMPLATE = "tile-template"
    STANDARD = "standard"


CATALOG_SCHEMA: dict[str, Any] = {
    "$id": "freqmap/basemaps.schema.json",
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["kind"],
        "properties": {
            "kind": {"enum": [kind.value for kind in LayerKind]},
            "urlTemplate": {"type": "string", "minLength": 1},
            "attribution": {"type": "string"},
            "maxZoom": {"type": "integer", "minimum": 0, "maximum": 30},
        },
        "if": {"properties": {"kind": {"const": LayerKind.TILE_TEMPLATE.value}}},
        "then": {"required": ["urlTemplate"]},
    },
}

_validator = Draft202012Validator(CATALOG_SCHEMA)

_ESRI_ATTRIBUTION = '&copy; <a href="https://www.esri.com">Esri</a>, Earthstar Geographics'
_ESRI_SERVICE = "https://server.arcgisonline.com/ArcGIS/rest/services/{service}/MapServer/tile/{{z}}/{{y}}/{{x}}"

DEFAULT_BASEMAPS: dict[str, dict[str, Any]] = {
    # Open Database License (ODbL).
    "OpenStreetMap": {"kind": LayerKind.STANDARD.value},
    # CC BY-SA; attribution required, may not be allowed for commercial use.
    "OpenTopoMap": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": "https://{a-c}.tile.opentopomap.org/{z}/{x}/{y}.png",
        "attribution": 'Map data: &copy; <a href="https://opentopomap.org">OpenTopoMap</a>',
        "maxZoom": 17,
    },
    "Carto Light": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": "https://{a-d}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}.png",
        "attribution": '&copy; <a href="https://carto.com/">CARTO</a>',
    },
    "Carto Dark": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": "https://{a-d}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}.png",
        "attribution": '&copy; <a href="https://carto.com/">CARTO</a>',
    },
    # Esri services are available for non-commercial public use only.
    "Esri World Imagery": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": _ESRI_SERVICE.format(service="World_Imagery"),
        "attribution": _ESRI_ATTRIBUTION,
    },
    "Esri World Physical": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": _ESRI_SERVICE.format(service="World_Physical_Map"),
        "attribution": _ESRI_ATTRIBUTION,
        "maxZoom": 8,
    },
    "Esri Topo": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": _ESRI_SERVICE.format(service="World_Topo_Map"),
        "attribution": _ESRI_ATTRIBUTION,
    },
    "Esri Nat Geo World": {
        "kind": LayerKind.TILE_TEMPLATE.value,
        "urlTemplate": _ESRI_SERVICE.format(service="NatGeo_World_Map"),
        "attribution": _ESRI_ATTRIBUTION,
        "maxZoom": 16,
    },
}


@dataclass(frozen=True)
class BaseLayerConfig:
    """Tile endpoint, attribution and kind of a single basemap."""

    name: str
    kind: LayerKind
    url_template: str | None = None
    attribution: str | None = None
    max_zoom: int = DEFAULT_MAX_ZOOM

    @property
    def resolved_template(self) -> str:
        """Return the URL template, substituting the standard OSM endpoint."""

        if self.kind is LayerKind.STANDARD or not self.url_template:
            return STANDARD_TILE_TEMPLATE
        return self.url_template

    @property
    def resolved_attribution(self) -> str:
        if self.attribution:
            return self.attribution
        if self.kind is LayerKind.STANDARD:
            return STANDARD_ATTRIBUTION
        return ""


class BasemapCatalog(Mapping[str, BaseLayerConfig]):
    """Read-only mapping of basemap names to :class:`BaseLayerConfig`."""

    def __init__(self, entries: Mapping[str, BaseLayerConfig]) -> None:
        self._entries = dict(entries)

    # ------------------------------------------------------------------
    @classmethod
    def from_mapping(cls, payload: object) -> "BasemapCatalog":
        """Validate a JSON-style payload and build the catalog from it."""

        try:
            _validator.validate(payload)
        except ValidationError as exc:
            location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
            raise BasemapCatalogError(f"Invalid basemap catalog at {location}: {exc.message}") from exc

        entries: dict[str, BaseLayerConfig] = {}
        for name, raw in payload.items():  # type: ignore[union-attr]
            entries[name] = BaseLayerConfig(
                name=name,
                kind=LayerKind(raw["kind"]),
                url_template=raw.get("urlTemplate"),
                attribution=raw.get("attribution"),
                max_zoom=int(raw.get("maxZoom", DEFAULT_MAX_ZOOM)),
            )
        return cls(entries)

    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Path | str) -> "BasemapCatalog":
        """Read a catalog from a JSON file."""

        catalog_path = Path(path)
        try:
            payload = json.loads(catalog_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise BasemapCatalogError(f"Unable to read basemap catalog '{catalog_path}': {exc}") from exc
        except json.JSONDecodeError as exc:
            raise BasemapCatalogError(f"Basemap catalog '{catalog_path}' is not valid JSON: {exc}") from exc
        return cls.from_mapping(payload)

    # ------------------------------------------------------------------
    def __getitem__(self, name: str) -> BaseLayerConfig:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def default_catalog() -> BasemapCatalog:
    """Return the catalog of built-in public basemaps."""

    return BasemapCatalog.from_mapping(DEFAULT_BASEMAPS)


__all__ = [
    "BaseLayerConfig",
    "BasemapCatalog",
    "CATALOG_SCHEMA",
    "DEFAULT_BASEMAPS",
    "LayerKind",
    "default_catalog",
]
