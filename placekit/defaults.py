from __future__ import annotations

DEFAULT_BASE_URL = "https://ftplace.42lwatch.ch"
DEFAULT_MAP_DIR = "map"

# Quota enforced by the canvas authority
MAX_PIXELS_PER_BATCH = 10
BATCH_WINDOW_S = 31 * 60.0
PIXEL_PACING_S = 1.0

# Transient failures (502, dropped connections)
MAX_ATTEMPTS = 10
RETRY_BACKOFF_S = 120.0
TRANSIENT_STATUSES = (502,)

REQUEST_TIMEOUT_S = 30.0
PROACTIVE_REFRESH_MARGIN_S = 120.0

COLOR_ID_MIN = 1
COLOR_ID_MAX = 16

# color_id -> (name, hex)
DEFAULT_PALETTE = {
    1: ("white", "#FFFFFF"),
    2: ("light grey", "#E4E4E4"),
    3: ("grey", "#888888"),
    4: ("black", "#222222"),
    5: ("pink", "#FFA7D1"),
    6: ("red", "#E50000"),
    7: ("orange", "#E59500"),
    8: ("brown", "#A06A42"),
    9: ("yellow", "#E5D900"),
    10: ("light green", "#94E044"),
    11: ("green", "#02BE01"),
    12: ("cyan", "#00D3DD"),
    13: ("blue", "#0083C7"),
    14: ("dark blue", "#0000EA"),
    15: ("magenta", "#CF6EE4"),
    16: ("purple", "#820080"),
}
