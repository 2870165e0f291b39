"""Custom exception hierarchy for freqmap."""

from __future__ import annotations


class FreqMapError(Exception):
    """Base class for all custom errors raised by freqmap."""


# --- Configuration errors ---

class ConfigurationError(FreqMapError):
    """Base class for invalid configuration supplied by the host."""


class MapInitializationError(ConfigurationError):
    """Raised when the viewer cannot be mounted, e.g. without a target widget."""


class BasemapCatalogError(ConfigurationError):
    """Raised when a basemap catalog fails validation."""


# --- Data errors ---

class DatasetLoadError(FreqMapError):
    """Raised when a dataset cannot be read or does not match the record schema."""


# --- Export errors ---

class ExportError(FreqMapError):
    """Raised when a rendered view cannot be written to disk."""


# --- Tile errors ---

class TileLoadingError(FreqMapError):
    """Base exception for recoverable tile loading problems."""


class TileFetchError(TileLoadingError):
    """Raised when a tile request fails at the transport or HTTP level."""


class TileDecodeError(TileLoadingError):
    """Raised when a tile payload cannot be decoded into an image."""


__all__ = [
    "BasemapCatalogError",
    "ConfigurationError",
    "DatasetLoadError",
    "ExportError",
    "FreqMapError",
    "MapInitializationError",
    "TileDecodeError",
    "TileFetchError",
    "TileLoadingError",
]
