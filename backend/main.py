"""Polymarket trader tracker FastAPI application."""
from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import (
    ALLOWED_ORIGINS,
    CACHE_MAXSIZE,
    ENABLE_REFRESH_LOOP,
    POLYMARKET_DATA_API_URL,
    RATE_LIMIT_BACKOFF_FACTOR,
    RATE_LIMIT_MAX_ATTEMPTS,
    RATE_LIMIT_MAX_DELAY_SECONDS,
    UPSTREAM_TIMEOUT_SECONDS,
    WATCHLIST_DB_PATH,
)
from backend.routers import health, trader
from tracker.addresses import InvalidAddressError
from tracker.aggregator import TraderAggregator
from tracker.cache import CacheLayer
from tracker.closed_positions import ClosedPositionFetcher, RetryPolicy
from tracker.observability import configure_logging
from tracker.polymarket_client import DataAPIClient, DataAPIError
from tracker.scheduler import run_refresh_loop
from tracker.watchlist import WatchlistStore

logger = logging.getLogger(__name__)


def build_retry_policy() -> RetryPolicy:
    """Rate-limit retry policy from environment settings (0 means unlimited)."""
    return RetryPolicy(
        backoff_factor=RATE_LIMIT_BACKOFF_FACTOR,
        max_delay=RATE_LIMIT_MAX_DELAY_SECONDS or None,
        max_attempts=RATE_LIMIT_MAX_ATTEMPTS or None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown resources."""
    # --- startup ---
    testing = os.getenv("TESTING") == "1"
    if not testing:
        configure_logging()
    logger.info("Starting trader tracker API...")

    cache = CacheLayer(maxsize=CACHE_MAXSIZE or None)
    app.state.cache = cache

    client = DataAPIClient(base_url=POLYMARKET_DATA_API_URL, timeout=UPSTREAM_TIMEOUT_SECONDS)
    app.state.data_client = client

    fetcher = ClosedPositionFetcher(client, cache, retry_policy=build_retry_policy())
    aggregator = TraderAggregator(client, cache, closed_fetcher=fetcher)
    app.state.aggregator = aggregator

    watchlist = WatchlistStore(WATCHLIST_DB_PATH)
    app.state.watchlist = watchlist

    # Launch the refresh loop as a background task (skip in test mode)
    if ENABLE_REFRESH_LOOP and not testing:
        app.state.refresh_task = asyncio.create_task(run_refresh_loop(aggregator, watchlist))

    logger.info("Trader tracker API ready.")
    yield

    # --- shutdown ---
    logger.info("Shutting down trader tracker API...")
    if hasattr(app.state, "refresh_task"):
        app.state.refresh_task.cancel()
        try:
            await app.state.refresh_task
        except asyncio.CancelledError:
            pass
    await client.close()
    watchlist.close()
    logger.info("Trader tracker API stopped.")


app = FastAPI(
    title="Polymarket Trader Tracker API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(trader.router)
app.include_router(health.router)


@app.exception_handler(InvalidAddressError)
async def invalid_address_handler(request: Request, exc: InvalidAddressError):
    return JSONResponse(status_code=400, content={"error": "Invalid address"})


@app.exception_handler(DataAPIError)
async def data_api_error_handler(request: Request, exc: DataAPIError):
    logger.error("Upstream failure for %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint."""
    return {"name": "Polymarket Trader Tracker API", "version": "0.1.0"}
