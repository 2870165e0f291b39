"""Public package interface for the map widget components.

The modules here only know about tiles, layers and markers as drawable
features; record parsing lives in :mod:`freqmap.markers`.
"""

from .base_layer_switcher import BaseLayerSwitcher, create_tile_source
from .layers import LayerCollection, TileLayer, VectorLayer, VectorSource
from .map_view import MapView
from .overlay import TooltipOverlay
from .pending import PendingOperation
from .tile_monitor import TileLoadMonitor, WaitState
from .tile_source import TileSource
from .tooltip import TooltipController, format_tooltip_html

__all__ = [
    "BaseLayerSwitcher",
    "LayerCollection",
    "MapView",
    "PendingOperation",
    "TileLayer",
    "TileLoadMonitor",
    "TileSource",
    "TooltipController",
    "TooltipOverlay",
    "VectorLayer",
    "VectorSource",
    "WaitState",
    "create_tile_source",
    "format_tooltip_html",
]
