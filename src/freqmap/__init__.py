"""Allele frequency map widget built on PySide6.

The package plots per-location frequency values as pie-chart markers on top
of a raster basemap.  :class:`~freqmap.viewer.FrequencyMapViewer` is the entry
point host applications embed; the remaining modules are re-exported here for
callers that only need the data helpers.
"""

from .basemaps import BaseLayerConfig, BasemapCatalog, LayerKind, default_catalog
from .icon_renderer import IconRenderer, PieIcon, pie_icon_data_uri, render_pie_svg
from .markers import Marker, MarkerBuilder, MarkerStore
from .records import ALLELE_FREQUENCY_FIELDS, FieldConfig, load_records, parse_number
from .viewer import FrequencyMapViewer, ViewerState

__version__ = "0.3.0"

__all__ = [
    "ALLELE_FREQUENCY_FIELDS",
    "BaseLayerConfig",
    "BasemapCatalog",
    "FieldConfig",
    "FrequencyMapViewer",
    "IconRenderer",
    "LayerKind",
    "Marker",
    "MarkerBuilder",
    "MarkerStore",
    "PieIcon",
    "ViewerState",
    "default_catalog",
    "load_records",
    "parse_number",
    "pie_icon_data_uri",
    "render_pie_svg",
]
