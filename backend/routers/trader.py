"""Trader router: aggregated statistics for one wallet."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.dependencies import get_aggregator
from backend.schemas import ErrorResponse
from tracker.addresses import normalize_address
from tracker.aggregator import TraderAggregator
from tracker.models import TraderSnapshot
from tracker.polymarket_client import DataAPIError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["trader"])


@router.get(
    "/trader/{address}",
    response_model=TraderSnapshot,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_trader(
    address: str,
    aggregator: TraderAggregator = Depends(get_aggregator),
):
    """Return the statistics snapshot for *address*.

    A malformed address is answered with 400 and upstream failures with 500
    by the app-level handlers in ``backend.main``.
    """
    address = normalize_address(address)

    try:
        return await aggregator.aggregate(address)
    except DataAPIError:
        raise
    except Exception as exc:
        logger.exception("Unexpected error aggregating trader %s", address)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc) or "Failed to fetch trader data"},
        )
