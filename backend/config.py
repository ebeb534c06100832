"""Backend-specific configuration."""
import os
from dotenv import load_dotenv

from tracker.config import DEFAULT_DATA_API_URL, DEFAULT_TIMEOUT_SECONDS

load_dotenv()

POLYMARKET_DATA_API_URL = os.getenv("POLYMARKET_DATA_API_URL", DEFAULT_DATA_API_URL)
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", str(DEFAULT_TIMEOUT_SECONDS)))
WATCHLIST_DB_PATH = os.getenv("WATCHLIST_DB_PATH", "data/watchlist.db")
CACHE_MAXSIZE = int(os.getenv("CACHE_MAXSIZE", "0"))  # 0 = unbounded
RATE_LIMIT_MAX_ATTEMPTS = int(os.getenv("RATE_LIMIT_MAX_ATTEMPTS", "0"))  # 0 = retry forever
RATE_LIMIT_BACKOFF_FACTOR = float(os.getenv("RATE_LIMIT_BACKOFF_FACTOR", "1.0"))
RATE_LIMIT_MAX_DELAY_SECONDS = float(os.getenv("RATE_LIMIT_MAX_DELAY_SECONDS", "0"))  # 0 = no cap
ENABLE_REFRESH_LOOP = os.getenv("ENABLE_REFRESH_LOOP", "true").lower() == "true"
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
BACKEND_HOST = os.getenv("BACKEND_HOST", "0.0.0.0")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "3001"))
BACKEND_RELOAD = os.getenv("BACKEND_RELOAD", "false").lower() == "true"
