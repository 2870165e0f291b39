"""Default configuration values for the frequency map widget."""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Dataset fields
# ---------------------------------------------------------------------------

FREQUENCY_FIELD: Final[str] = "frequency"
ALLELE_FREQUENCY_FIELD: Final[str] = "average_allele_frequency"
UNKNOWN_LABEL: Final[str] = "Unknown"

# ---------------------------------------------------------------------------
# Pie icons
# ---------------------------------------------------------------------------

# Canonical SVG size in logical units.  Markers are drawn at ``ICON_SCALE`` of
# this size while tooltips show the icon at full size.
ICON_SIZE: Final[int] = 40
ICON_SCALE: Final[float] = 0.6
ICON_BACKGROUND_COLOR: Final[str] = "#452701"
ICON_WEDGE_COLOR: Final[str] = "#ff6600"

# ---------------------------------------------------------------------------
# Tiles
# ---------------------------------------------------------------------------

TILE_SIZE: Final[int] = 256
DEFAULT_MAX_ZOOM: Final[int] = 19
TILE_CACHE_LIMIT: Final[int] = 4096
# Transport failures are retried until a tile failed this many times.
TILE_MAX_ATTEMPTS: Final[int] = 3
TILE_REQUEST_TIMEOUT_SEC: Final[float] = 15.0
TILE_USER_AGENT: Final[str] = "freqmap/0.3 (+https://github.com/freqmap/freqmap)"
STANDARD_TILE_TEMPLATE: Final[str] = "https://{a-c}.tile.openstreetmap.org/{z}/{x}/{y}.png"
STANDARD_ATTRIBUTION: Final[str] = "&copy; OpenStreetMap contributors"

# ---------------------------------------------------------------------------
# Timing (milliseconds)
# ---------------------------------------------------------------------------

# A viewport whose tiles are all cached never emits a load-start event.  When
# nothing starts within the grace window the wait resolves as quiet.
TILE_LOAD_GRACE_MS: Final[int] = 500
TILE_LOAD_TIMEOUT_MS: Final[int] = 5000
CROSSFADE_DELAY_MS: Final[int] = 300
RESIZE_DEBOUNCE_MS: Final[int] = 100
POST_LOAD_RESIZE_DELAY_MS: Final[int] = 100
REPAINT_COALESCE_MS: Final[int] = 16

# ---------------------------------------------------------------------------
# View
# ---------------------------------------------------------------------------

DEFAULT_CENTER_LONLAT: Final[tuple[float, float]] = (0.0, 0.0)
DEFAULT_ZOOM: Final[float] = 2.0
MIN_ZOOM: Final[float] = 1.0
MAX_ZOOM: Final[float] = 19.0
DEFAULT_BASE_LAYER: Final[str] = "OpenStreetMap"
BACKGROUND_COLOR: Final[str] = "#dfe6ec"

# Overlay anchored bottom-centre, lifted above the marker.
OVERLAY_OFFSET: Final[tuple[int, int]] = (0, -15)
