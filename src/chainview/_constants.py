"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Discovery topics
# ------------------------------------------------------------------

AVAILABLE_CHAINS_TOPIC = "AvailableChains"
SELECTED_CHAIN_TOPIC = "SelectedChain"
AVAILABLE_SUBSYSTEM_STATUS_PATTERN = "AvailableSubSystems/+/Status"
AVAILABLE_SUBSYSTEM_DEFINITION_PATTERN = "AvailableSubSystems/+/Definition"

PUBLISH_QOS = 1
PUBLISH_RETAIN = True

# ------------------------------------------------------------------
# Poll cadences  [seconds]
# ------------------------------------------------------------------

LAYER_REFRESH_INTERVAL = 1.0
STATUS_REFRESH_INTERVAL = 2.0
STATUS_TIMEOUT = 3.0
DEFAULT_RELOAD_DELAY = 1.5

# Keyed entities are evicted after this many declared refresh periods.
ENTITY_TIMEOUT_PERIODS = 4

# Generations kept by the density stores (current generation included).
SCAN_HISTORY = 2
SCAN_LAYER_HISTORY = 6

TRAIL_HISTORY_LIMIT = 500

# ------------------------------------------------------------------
# Rate histogram
# ------------------------------------------------------------------

RATE_BAR_COUNT = 6
EMPTY_RATE_MASK: tuple[int, ...] = (0,) * RATE_BAR_COUNT

# ------------------------------------------------------------------
# Layer identity helpers
# ------------------------------------------------------------------

BASE_CHAIN_KEY = "Base"
SETUP_SUBSYSTEM_KEY = "Setup"
WORLD_MAP_STREAM_KEY = "WorldMap"
ROSETTE_STREAM_KEY = "Rosette"

# ------------------------------------------------------------------
# Endpoint defaults for newly added subsystems
# ------------------------------------------------------------------

DEFAULT_ENDPOINT_PROTOCOL = "MQTT"
DEFAULT_ENDPOINT_HOST = "127.0.0.1"
DEFAULT_ENDPOINT_PORT = "1883"
BROKER_ENDPOINT_PROTOCOLS: frozenset[str] = frozenset({"MQTT", "MQTTS"})
INCOMING_ENDPOINT_PROTOCOLS: frozenset[str] = frozenset({"MQTT", "MQTTS", "TCP"})

# ------------------------------------------------------------------
# Base map tiles
# ------------------------------------------------------------------

DEFAULT_TILE_URL_LIGHT = "https://tiles.stadiamaps.com/tiles/alidade_smooth/{z}/{x}/{y}{r}.png"
DEFAULT_TILE_URL_DARK = "https://tiles.stadiamaps.com/tiles/alidade_smooth_dark/{z}/{x}/{y}{r}.png"

# ------------------------------------------------------------------
# Classification colours (index → hex)
# ------------------------------------------------------------------

PALETTE: tuple[str, ...] = (
    "#F2F2F2",  # light white
    "#16C60C",  # light green
    "#3B78FF",  # light blue
    "#E74856",  # light red
    "#61D6D6",  # light cyan
    "#B4009E",  # light magenta
    "#F9F1A5",  # light yellow
    "#CCCCCC",  # dark white
    "#13A10E",  # dark green
    "#0037DA",  # dark blue
    "#C50F1F",  # dark red
    "#3A96DD",  # dark cyan
    "#881798",  # dark magenta
    "#C19C00",  # dark yellow
)


def palette_colour(index: int) -> str:
    """Return the palette colour for *index*, wrapping out-of-range values."""
    return PALETTE[index % len(PALETTE)]


# Track target outlines, indexed by classification ``symbolIndex``.
TRACK_SYMBOLS: tuple[str, ...] = (
    "m 26,9 -7,25 7,-8 7,8 z",
    "m 26,15 c -7,0 -7,10 -7,10 v 9 l 7,-8 7,8 v -9 c 0,0 0,-10 -7,-10 z",
    "m 19,17 v 17 l 7,-8 7,8 V 17 Z",
)

# ------------------------------------------------------------------
# ISO-8601 duration units  [seconds]
# ------------------------------------------------------------------

SECONDS_IN_MINUTE = 60
SECONDS_IN_HOUR = 3_600
SECONDS_IN_DAY = 86_400
SECONDS_IN_WEEK = 604_800
SECONDS_IN_MONTH = 2_419_200
SECONDS_IN_YEAR = 31_536_000
