"""Health check router."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.dependencies import get_cache
from backend.schemas import HealthResponse
from tracker.cache import CacheLayer

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(cache: CacheLayer = Depends(get_cache)) -> HealthResponse:
    """Liveness probe reporting the number of live cache entries."""
    return HealthResponse(status="ok", cached=len(cache))
