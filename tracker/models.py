"""Pydantic models for Polymarket data-API payloads and derived trader statistics.

Upstream payloads use camelCase keys; every model here is declared with
snake_case attributes and a camelCase alias generator so the same models
validate raw API rows and serialize the REST response the dashboard reads.
``populate_by_name=True`` keeps snake_case construction available in code
and tests.

Numeric fields are optional upstream: a missing or ``null`` value becomes 0.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _zero_if_none(value: Any) -> Any:
    return 0 if value is None else value


def _whole_seconds(value: Any) -> Any:
    if value is None:
        return 0
    if isinstance(value, float):
        return int(value)
    return value


Number = Annotated[float, BeforeValidator(_zero_if_none)]
# Some rows carry fractional unix seconds.
Timestamp = Annotated[int, BeforeValidator(_whole_seconds)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Upstream rows: GET /positions, /closed-positions, /trades, /value
# ---------------------------------------------------------------------------

class RawPosition(_CamelModel):
    """One open or closed market position as returned by the data API.

    ``condition_id`` identifies the market and groups several rows that
    belong to the same market.
    """

    condition_id: str | None = None
    asset: str | None = None
    size: Number = 0.0
    avg_price: Number = 0.0
    initial_value: Number = 0.0
    current_value: Number = 0.0
    cash_pnl: Number = 0.0
    total_bought: Number = 0.0
    realized_pnl: Number = 0.0
    cur_price: Number = 0.0
    title: str | None = None
    slug: str | None = None
    icon: str | None = None
    outcome: str | None = None
    timestamp: Timestamp = 0
    pseudonym: str | None = None


class RawTrade(_CamelModel):
    """One executed trade.  ``timestamp`` is unix seconds; ``side`` is BUY or SELL."""

    condition_id: str | None = None
    asset: str | None = None
    timestamp: Timestamp = 0
    size: Number = 0.0
    price: Number = 0.0
    side: str | None = None
    title: str | None = None
    slug: str | None = None
    outcome: str | None = None
    pseudonym: str | None = None
    transaction_hash: str | None = None


class PortfolioValue(_CamelModel):
    """Current portfolio value for a wallet."""

    user: str | None = None
    value: Number = 0.0


def unwrap_portfolio_value(payload: Any) -> float:
    """Resolve the /value response into a single float.

    The endpoint answers either with a bare object or with a one-element
    list.  An empty list, ``null`` or anything unrecognized yields 0.0.
    """
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return 0.0
    return PortfolioValue.model_validate(payload).value


# ---------------------------------------------------------------------------
# Derived rows
# ---------------------------------------------------------------------------

class OpenPosition(RawPosition):
    """An open position (size above the dust floor) with derived fields."""

    model_config = ConfigDict(frozen=True)

    unrealized_pnl: float
    pnl_percent: float
    entry_price: float
    current_price: float
    last_trade_timestamp: int


class ClosedPosition(_CamelModel):
    """A resolved position, de-duplicated by market.

    ``won`` means the outcome resolved at 1, ``lost`` at 0.  A position
    with a resolution price strictly between 0 and 1 is neither.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    outcome: str
    condition_id: str | None = None
    total_bought: float
    amount_won: float
    realized_pnl: float
    pnl_percent: float
    won: bool
    lost: bool
    timestamp: int
    avg_price: float


class TradeView(RawTrade):
    """A trade annotated with its notional USD value (``size * price``)."""

    model_config = ConfigDict(frozen=True)

    usd_value: float


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class TraderSnapshot(_CamelModel):
    """Result of one aggregation run for one wallet.

    Built fresh on every cache miss and never mutated afterwards; the next
    aggregation replaces it in the cache.  Period P&L fields hold realized
    P&L inside the window plus the full current unrealized P&L.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    found: bool
    pseudonym: str | None = None
    total_pnl: float
    pnl_1d: float = Field(alias="pnl1d")
    pnl_1w: float = Field(alias="pnl1w")
    pnl_1m: float = Field(alias="pnl1m")
    win_rate: float
    total_volume: float
    current_value: float
    wins: int
    losses: int
    total_positions: int
    notable_bets: list[str]
    trades: list[TradeView]
    positions: list[OpenPosition]
    closed_positions: list[ClosedPosition]
    avg_position_size: float
    largest_trade: float
    avg_trade_size: float
    total_trades: int
    open_position_count: int
    closed_position_count: int
