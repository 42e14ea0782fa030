"""State Crime Bubble Map — Configuration & Constants"""

from pathlib import Path

_DATA_DIR = Path(__file__).resolve().parent / "data"

# ── Data sources (URL or local path) ──
STATS_URL = str(_DATA_DIR / "data_with_coordinates.json")
GEO_URL = str(_DATA_DIR / "us-states.json")
HTTP_TIMEOUT = 15.0

# ── Schema ──
STATE_FIELD = "state_abbr"
YEAR_FIELD = "data_year"
POPULATION_FIELD = "Population"
UNEMPLOYMENT_FIELD = "Unemployment_Rate"
RATE_SUFFIX = "_rate"

# Explicit category keys, e.g. ("Violent_rate", "Property_rate").
# None = infer from the first record's fields.
CATEGORY_SCHEMA = None

# ── Map ──
MAP_CENTER = [37.8, -96]
MAP_ZOOM = 4
TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = "© OpenStreetMap contributors"
MAP_WIDTH = 1100
MAP_HEIGHT = 580

# ── Marker encoding ──
RADIUS_SCALE = 0.008
MARKER_RGB = (0, 0, 255)
FILL_OPACITY = 0.5
POPUP_MAX_WIDTH = 300

LOG_LEVEL = "INFO"
