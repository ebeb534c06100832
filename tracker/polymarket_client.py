"""Async client for the Polymarket data API.

Wraps the four read-only endpoints the tracker consumes: open positions,
trades, portfolio value and the paginated closed-positions feed.  The client
performs exactly one HTTP request per call and maps every failure onto
:class:`DataAPIError`; retry and pagination policy live with the callers
(see ``tracker.closed_positions``).  A row that fails validation is logged
and dropped; the rest of the response is kept.

Usage::

    async with DataAPIClient() as client:
        positions = await client.fetch_positions("0xabc...")
"""

from __future__ import annotations

import logging
import os
from typing import Any, NamedTuple, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from tracker.config import (
    DEFAULT_DATA_API_URL,
    DEFAULT_TIMEOUT_SECONDS,
    POSITIONS_LIMIT,
    POSITIONS_SIZE_THRESHOLD,
    TRADES_LIMIT,
)
from tracker.models import RawPosition, RawTrade, unwrap_portfolio_value

logger = logging.getLogger(__name__)

_RowT = TypeVar("_RowT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class DataAPIError(Exception):
    """Raised when a data-API call does not succeed.

    ``status_code`` is the HTTP status, or 0 for transport-level failures
    (connection errors, timeouts) and undecodable bodies.
    """

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Polymarket data API error {status_code}: {detail}")


class DataAPIRateLimitError(DataAPIError):
    """Raised when the data API answers 429."""

    def __init__(self, detail: str = "Rate limit exceeded") -> None:
        super().__init__(status_code=429, detail=detail)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ClosedPositionsPage(NamedTuple):
    """One page of /closed-positions.

    ``received`` counts the rows the API sent, including any that failed
    validation and were dropped from ``rows``; pagination advances by it.
    """

    rows: list[RawPosition]
    received: int


def _validate_rows(
    model: type[_RowT], rows: list[Any], endpoint: str
) -> list[_RowT]:
    """Validate each row of a list response, dropping rows that do not parse."""
    valid: list[_RowT] = []
    for index, row in enumerate(rows):
        try:
            valid.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed row endpoint=%s index=%d errors=%d",
                endpoint,
                index,
                exc.error_count(),
            )
    return valid


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class DataAPIClient:
    """Async wrapper around the Polymarket data API endpoints.

    Parameters
    ----------
    base_url:
        API base URL.  Falls back to the ``POLYMARKET_DATA_API_URL`` env var,
        then ``https://data-api.polymarket.com``.
    timeout:
        Per-request timeout in seconds.
    client:
        Pre-built ``httpx.AsyncClient``.  When given, the caller owns it and
        :meth:`close` leaves it open.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (
            base_url
            or os.getenv("POLYMARKET_DATA_API_URL")
            or DEFAULT_DATA_API_URL
        ).rstrip("/")

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout or DEFAULT_TIMEOUT_SECONDS),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    # ------------------------------------------------------------------
    # Context-manager protocol
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DataAPIClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------------

    async def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        """Send one GET request and return the decoded JSON body.

        Raises
        ------
        DataAPIRateLimitError
            On 429.
        DataAPIError
            On any other non-2xx status, on transport errors and on bodies
            that are not valid JSON.
        """
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.HTTPError as exc:
            logger.warning(
                "Data API network error endpoint=%s error=%s", endpoint, exc
            )
            raise DataAPIError(status_code=0, detail=str(exc) or type(exc).__name__) from exc

        status = response.status_code

        if status == 429:
            raise DataAPIRateLimitError(detail=f"429 for {endpoint}")

        if not 200 <= status < 300:
            body_text = response.text
            logger.warning(
                "Data API error status=%d endpoint=%s body=%s",
                status,
                endpoint,
                body_text[:200],
            )
            raise DataAPIError(status_code=status, detail=body_text or response.reason_phrase)

        try:
            return response.json()
        except ValueError as exc:
            raise DataAPIError(status_code=0, detail=f"Invalid JSON from {endpoint}") from exc

    async def _get_list(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = await self._get(endpoint, params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise DataAPIError(
                status_code=0,
                detail=f"Expected a JSON array from {endpoint}, got {type(data).__name__}",
            )
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def fetch_positions(self, address: str) -> list[RawPosition]:
        """Fetch every position held by *address*, with no size floor."""
        rows = await self._get_list(
            "/positions",
            {
                "user": address,
                "limit": POSITIONS_LIMIT,
                "sizeThreshold": POSITIONS_SIZE_THRESHOLD,
            },
        )
        return _validate_rows(RawPosition, rows, "/positions")

    async def fetch_trades(self, address: str) -> list[RawTrade]:
        """Fetch the most recent trades for *address*."""
        rows = await self._get_list(
            "/trades",
            {"user": address, "limit": TRADES_LIMIT},
        )
        return _validate_rows(RawTrade, rows, "/trades")

    async def fetch_value(self, address: str) -> float:
        """Fetch the current portfolio value of *address* in USD."""
        data = await self._get("/value", {"user": address})
        try:
            return unwrap_portfolio_value(data)
        except ValidationError as exc:
            raise DataAPIError(status_code=0, detail="Malformed body from /value") from exc

    async def fetch_closed_positions_page(
        self,
        address: str,
        offset: int,
        limit: int,
    ) -> ClosedPositionsPage:
        """Fetch one page ``[offset, offset + limit)`` of resolved positions."""
        rows = await self._get_list(
            "/closed-positions",
            {"user": address, "limit": limit, "offset": offset},
        )
        return ClosedPositionsPage(
            rows=_validate_rows(RawPosition, rows, "/closed-positions"),
            received=len(rows),
        )
