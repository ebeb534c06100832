"""FastAPI dependency injection helpers."""
from __future__ import annotations

from fastapi import Request

from tracker.aggregator import TraderAggregator
from tracker.cache import CacheLayer


def get_aggregator(request: Request) -> TraderAggregator:
    """Return the shared TraderAggregator from app state."""
    return request.app.state.aggregator


def get_cache(request: Request) -> CacheLayer:
    """Return the shared CacheLayer from app state."""
    return request.app.state.cache
