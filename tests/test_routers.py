"""Integration tests for FastAPI router endpoints.

Uses httpx.AsyncClient with ASGITransport to test endpoints against the real
FastAPI app with a mocked TraderAggregator and a real CacheLayer.
"""
from __future__ import annotations

import os

os.environ["TESTING"] = "1"

from unittest.mock import AsyncMock

import httpx
import pytest
from httpx import ASGITransport

from backend.dependencies import get_aggregator, get_cache
from backend.main import app
from tests.conftest import ADDR_A, make_closed, make_position, make_trade
from tracker.aggregator import build_snapshot
from tracker.cache import CacheLayer
from tracker.polymarket_client import DataAPIError, DataAPIRateLimitError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_aggregator():
    """Return an AsyncMock TraderAggregator answering with a small wallet."""
    aggregator = AsyncMock()
    aggregator.aggregate.return_value = build_snapshot(
        ADDR_A,
        positions=[make_position()],
        trades=[make_trade()],
        current_value=25.0,
        closed_rows=[make_closed()],
        now=1_800_000_000,
    )
    return aggregator


@pytest.fixture
def mock_cache():
    """Return a real CacheLayer (in-memory, no external deps)."""
    return CacheLayer()


@pytest.fixture
async def client(mock_aggregator, mock_cache):
    """Async httpx test client with dependency overrides."""
    app.dependency_overrides[get_aggregator] = lambda: mock_aggregator
    app.dependency_overrides[get_cache] = lambda: mock_cache

    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================================================
# 1. GET /api/trader/{address}
# ===========================================================================


class TestTraderEndpoint:
    """Tests for the trader statistics endpoint."""

    async def test_returns_camel_case_snapshot(self, client, mock_aggregator):
        resp = await client.get(f"/api/trader/{ADDR_A}")

        assert resp.status_code == 200
        body = resp.json()
        assert body["address"] == ADDR_A
        assert body["found"] is True
        assert body["pseudonym"] == "Rainmaker"
        assert body["currentValue"] == 25.0
        assert body["winRate"] == 100.0
        assert body["pnl1d"] == body["pnl1w"] == body["pnl1m"]
        assert body["notableBets"] == ["Will it rain tomorrow?"]
        assert body["positions"][0]["lastTradeTimestamp"] == 1_700_000_000
        assert body["closedPositions"][0]["amountWon"] == 80.0
        assert body["trades"][0]["usdValue"] == 20.0
        mock_aggregator.aggregate.assert_awaited_once_with(ADDR_A)

    async def test_mixed_case_address_is_normalized(self, client, mock_aggregator):
        resp = await client.get("/api/trader/" + "0x" + "A1" * 20)

        assert resp.status_code == 200
        mock_aggregator.aggregate.assert_awaited_once_with(ADDR_A)

    @pytest.mark.parametrize("bad", ["0x123", "a1" * 21, "0x" + "zz" * 20])
    async def test_invalid_address_400(self, client, mock_aggregator, bad):
        resp = await client.get(f"/api/trader/{bad}")

        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid address"}
        mock_aggregator.aggregate.assert_not_awaited()

    async def test_upstream_error_500(self, client, mock_aggregator):
        mock_aggregator.aggregate.side_effect = DataAPIError(status_code=502, detail="bad gateway")

        resp = await client.get(f"/api/trader/{ADDR_A}")

        assert resp.status_code == 500
        assert "502" in resp.json()["error"]

    async def test_rate_limited_upstream_500(self, client, mock_aggregator):
        mock_aggregator.aggregate.side_effect = DataAPIRateLimitError()

        resp = await client.get(f"/api/trader/{ADDR_A}")

        assert resp.status_code == 500
        assert "error" in resp.json()

    async def test_unexpected_error_500_with_fallback_message(self, client, mock_aggregator):
        mock_aggregator.aggregate.side_effect = RuntimeError()

        resp = await client.get(f"/api/trader/{ADDR_A}")

        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to fetch trader data"}


# ===========================================================================
# 2. GET /health and /
# ===========================================================================


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    async def test_health_empty_cache(self, client):
        resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "cached": 0}

    async def test_health_counts_live_entries(self, client, mock_cache):
        mock_cache.set("trader-" + ADDR_A, "snapshot", ttl=60)
        mock_cache.set("closed-" + ADDR_A, [], ttl=300)

        resp = await client.get("/health")

        assert resp.json()["cached"] == 2


class TestRoot:
    async def test_root(self, client):
        resp = await client.get("/")

        assert resp.status_code == 200
        assert resp.json()["name"] == "Polymarket Trader Tracker API"
