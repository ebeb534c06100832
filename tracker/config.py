"""Centralized constants for the trader tracker.

Page sizes, delays, cache lifetimes and P&L windows live here so the
fetcher, aggregator and refresh loop agree on them.  Deployment-specific
settings (URLs, ports, timeouts) are read from the environment in
``backend/config.py``.
"""

# ---------------------------------------------------------------------------
# Upstream data API
# ---------------------------------------------------------------------------

DEFAULT_DATA_API_URL = "https://data-api.polymarket.com"
DEFAULT_TIMEOUT_SECONDS = 30.0

POSITIONS_LIMIT = 1000
POSITIONS_SIZE_THRESHOLD = -1  # no size floor upstream
TRADES_LIMIT = 2000

# ---------------------------------------------------------------------------
# Closed-position pagination
# ---------------------------------------------------------------------------

CLOSED_PAGE_SIZE = 50
PAGE_DELAY_SECONDS = 0.15
RATE_LIMIT_DELAY_SECONDS = 2.0

# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

TRADER_KEY_PREFIX = "trader-"
CLOSED_KEY_PREFIX = "closed-"

TRADER_TTL_INTERACTIVE = 60  # 1 min
TRADER_TTL_PREFETCH = 300  # 5 min
CLOSED_POSITIONS_TTL = 300  # 5 min

# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

OPEN_POSITION_MIN_SIZE = 0.01
NOTABLE_MARKETS_LIMIT = 5
UNKNOWN_MARKET_TITLE = "Unknown Market"

_DAY = 24 * 60 * 60
PNL_WINDOWS = {
    "1d": 1 * _DAY,
    "1w": 7 * _DAY,
    "1m": 30 * _DAY,
}

# ---------------------------------------------------------------------------
# Background refresh
# ---------------------------------------------------------------------------

REFRESH_INITIAL_DELAY_SECONDS = 5.0
REFRESH_INTERVAL_SECONDS = 5 * 60
REFRESH_ADDRESS_DELAY_SECONDS = 0.5
