"""Shared pytest fixtures and row builders for the tracker test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tracker.cache import CacheLayer
from tracker.models import RawPosition, RawTrade
from tracker.polymarket_client import ClosedPositionsPage

ADDR_A = "0x" + "a1" * 20
ADDR_B = "0x" + "b2" * 20


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_position(**overrides) -> RawPosition:
    """Return an open RawPosition with reasonable defaults."""
    defaults = dict(
        conditionId="0xcond-open",
        size=10.0,
        avgPrice=0.4,
        initialValue=4.0,
        currentValue=6.0,
        cashPnl=2.0,
        totalBought=4.0,
        realizedPnl=0.0,
        curPrice=0.6,
        title="Will it rain tomorrow?",
        outcome="Yes",
        pseudonym="Rainmaker",
    )
    defaults.update(overrides)
    return RawPosition.model_validate(defaults)


def make_closed(**overrides) -> RawPosition:
    """Return a resolved (won) RawPosition with reasonable defaults."""
    defaults = dict(
        conditionId="0xcond-closed",
        avgPrice=0.5,
        totalBought=50.0,
        realizedPnl=30.0,
        curPrice=1,
        title="Closed market",
        outcome="No",
        timestamp=0,
    )
    defaults.update(overrides)
    return RawPosition.model_validate(defaults)


def make_trade(**overrides) -> RawTrade:
    """Return a BUY RawTrade with reasonable defaults."""
    defaults = dict(
        conditionId="0xcond-open",
        timestamp=1_700_000_000,
        size=2.0,
        price=10.0,
        side="BUY",
        title="Will it rain tomorrow?",
        outcome="Yes",
        pseudonym="Rainmaker",
    )
    defaults.update(overrides)
    return RawTrade.model_validate(defaults)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheLayer:
    """A real CacheLayer driven by the fake clock."""
    return CacheLayer(timer=clock)


@pytest.fixture
def mock_client() -> AsyncMock:
    """An AsyncMock DataAPIClient answering with an empty wallet."""
    client = AsyncMock()
    client.fetch_positions.return_value = []
    client.fetch_trades.return_value = []
    client.fetch_value.return_value = 0.0
    client.fetch_closed_positions_page.return_value = ClosedPositionsPage(rows=[], received=0)
    return client
