"""Trader statistics aggregation.

Combines four upstream datasets for one wallet into a
:class:`~tracker.models.TraderSnapshot`:

1. open positions, trades and portfolio value, fetched concurrently; any
   failure among the three fails the whole aggregation;
2. the full closed-position history, from
   :class:`~tracker.closed_positions.ClosedPositionFetcher`, which tolerates
   partial results.

The derivation itself is the pure function :func:`build_snapshot`; the
:class:`TraderAggregator` adds caching and I/O around it.

Volume is accrued from three overlapping sources (position cost basis,
closed-position cost basis, and trade notional).  The dashboard has always
reported it this way and the figure is kept as-is.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

from tracker.addresses import normalize_address, short_address
from tracker.cache import CacheLayer
from tracker.closed_positions import ClosedPositionFetcher
from tracker.config import (
    NOTABLE_MARKETS_LIMIT,
    OPEN_POSITION_MIN_SIZE,
    PNL_WINDOWS,
    TRADER_KEY_PREFIX,
    TRADER_TTL_INTERACTIVE,
    TRADER_TTL_PREFETCH,
    UNKNOWN_MARKET_TITLE,
)
from tracker.models import (
    ClosedPosition,
    OpenPosition,
    RawPosition,
    RawTrade,
    TradeView,
    TraderSnapshot,
)
from tracker.polymarket_client import DataAPIClient

logger = logging.getLogger(__name__)


def trader_cache_key(address: str) -> str:
    return f"{TRADER_KEY_PREFIX}{address}"


# ---------------------------------------------------------------------------
# Derivation helpers
# ---------------------------------------------------------------------------


def _percent(numerator: float, denominator: float) -> float:
    """``numerator / denominator * 100``, or 0 when the denominator is not positive."""
    return numerator / denominator * 100 if denominator > 0 else 0.0


def last_trade_by_market(trades: Sequence[RawTrade]) -> dict[str | None, int]:
    """Map each condition id to the latest trade timestamp seen for it."""
    latest: dict[str | None, int] = {}
    for trade in trades:
        ts = trade.timestamp
        if trade.condition_id not in latest or ts > latest[trade.condition_id]:
            latest[trade.condition_id] = ts
    return latest


def to_open_position(pos: RawPosition, last_trade: dict[str | None, int]) -> OpenPosition:
    return OpenPosition(
        **pos.model_dump(),
        unrealized_pnl=pos.cash_pnl,
        pnl_percent=_percent(pos.cash_pnl, pos.initial_value),
        entry_price=pos.avg_price,
        current_price=pos.cur_price,
        last_trade_timestamp=last_trade.get(pos.condition_id, 0),
    )


def to_closed_position(pos: RawPosition) -> ClosedPosition:
    won = pos.cur_price == 1
    lost = pos.cur_price == 0
    return ClosedPosition(
        title=pos.title or UNKNOWN_MARKET_TITLE,
        outcome=pos.outcome or "",
        condition_id=pos.condition_id,
        total_bought=pos.total_bought,
        amount_won=pos.total_bought + pos.realized_pnl if won else 0.0,
        realized_pnl=pos.realized_pnl,
        pnl_percent=_percent(pos.realized_pnl, pos.total_bought),
        won=won,
        lost=lost,
        timestamp=pos.timestamp,
        avg_price=pos.avg_price,
    )


def dedupe_closed_positions(rows: Sequence[RawPosition]) -> list[ClosedPosition]:
    """Keep the first row seen for each condition id and drop the rest entirely."""
    seen: set[str | None] = set()
    closed: list[ClosedPosition] = []
    for pos in rows:
        if pos.condition_id in seen:
            continue
        seen.add(pos.condition_id)
        closed.append(to_closed_position(pos))
    return closed


def period_pnl(
    closed: Sequence[ClosedPosition], now: int, unrealized_pnl: float
) -> dict[str, float]:
    """Realized P&L per trailing window plus the full unrealized P&L.

    A closed position counts toward a window when
    ``timestamp >= now - window``.  Unrealized P&L is not windowed: it is
    added in full to every bucket.
    """
    result: dict[str, float] = {}
    for name, seconds in PNL_WINDOWS.items():
        since = now - seconds
        realized = sum(pos.realized_pnl for pos in closed if pos.timestamp >= since)
        result[name] = realized + unrealized_pnl
    return result


def build_snapshot(
    address: str,
    positions: Sequence[RawPosition],
    trades: Sequence[RawTrade],
    current_value: float,
    closed_rows: Sequence[RawPosition],
    now: int,
) -> TraderSnapshot:
    """Derive the statistics snapshot for one wallet.

    *now* is the current unix time in whole seconds; the trailing P&L
    windows are measured from it.
    """
    last_trade = last_trade_by_market(trades)

    total_pnl = 0.0
    total_volume = 0.0

    # --- open positions ---
    open_positions: list[OpenPosition] = []
    titles: dict[str, None] = {}
    for pos in positions:
        total_volume += abs(pos.total_bought or pos.initial_value or 0.0)
        if pos.size > OPEN_POSITION_MIN_SIZE:
            total_pnl += pos.cash_pnl
            if pos.title:
                titles.setdefault(pos.title, None)
            open_positions.append(to_open_position(pos, last_trade))

    # --- closed positions ---
    closed_positions = dedupe_closed_positions(closed_rows)
    wins = sum(1 for pos in closed_positions if pos.won)
    losses = sum(1 for pos in closed_positions if pos.lost)
    for pos in closed_positions:
        total_pnl += pos.realized_pnl
        total_volume += pos.total_bought

    unrealized_pnl = sum(pos.unrealized_pnl for pos in open_positions)
    windows = period_pnl(closed_positions, now, unrealized_pnl)

    # --- trades ---
    trade_views = [
        TradeView(**trade.model_dump(), usd_value=trade.size * trade.price)
        for trade in trades
    ]
    trade_sizes = [abs(trade.usd_value) for trade in trade_views]
    total_volume += sum(trade_sizes)
    # sorted() is stable, so equal timestamps keep upstream order.
    sorted_trades = sorted(trade_views, key=lambda t: t.timestamp, reverse=True)

    # --- summary ---
    resolved = wins + losses
    win_rate = round(wins / resolved * 100, 1) if resolved else 0.0
    total_positions = len(open_positions) + len(closed_positions)
    avg_position_size = total_volume / total_positions if total_positions else 0.0
    largest_trade = max(trade_sizes) if trade_sizes else 0.0
    avg_trade_size = sum(trade_sizes) / len(trade_sizes) if trade_sizes else 0.0

    pseudonym = (positions[0].pseudonym if positions else None) or (
        trades[0].pseudonym if trades else None
    ) or None

    return TraderSnapshot(
        address=address,
        found=total_positions > 0 or len(trades) > 0,
        pseudonym=pseudonym,
        total_pnl=total_pnl,
        pnl_1d=windows["1d"],
        pnl_1w=windows["1w"],
        pnl_1m=windows["1m"],
        win_rate=win_rate,
        total_volume=total_volume,
        current_value=current_value,
        wins=wins,
        losses=losses,
        total_positions=total_positions,
        notable_bets=list(titles)[:NOTABLE_MARKETS_LIMIT],
        trades=sorted_trades,
        positions=open_positions,
        closed_positions=closed_positions,
        avg_position_size=avg_position_size,
        largest_trade=largest_trade,
        avg_trade_size=avg_trade_size,
        total_trades=len(trades),
        open_position_count=len(open_positions),
        closed_position_count=len(closed_positions),
    )


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class TraderAggregator:
    """Cached entry point for trader statistics.

    Parameters
    ----------
    client:
        Upstream data-API client.
    cache:
        Shared cache; snapshots are stored under ``trader-<address>``.
    closed_fetcher:
        Closed-position fetcher.  Built from *client* and *cache* when omitted.
    clock:
        Returns the current unix time in seconds.
    """

    def __init__(
        self,
        client: DataAPIClient,
        cache: CacheLayer,
        closed_fetcher: ClosedPositionFetcher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._cache = cache
        self._closed_fetcher = closed_fetcher or ClosedPositionFetcher(client, cache)
        self._clock = clock

    async def aggregate(self, address: str, *, prefetch: bool = False) -> TraderSnapshot:
        """Return the snapshot for *address*, from cache when fresh.

        ``prefetch=True`` marks a background refresh and caches the result
        for five minutes instead of one.

        Raises
        ------
        InvalidAddressError
            When *address* is malformed.
        DataAPIError
            When positions, trades or value could not be fetched.  Nothing is
            cached in that case.
        """
        address = normalize_address(address)
        cache_key = trader_cache_key(address)

        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info("Cache hit for %s", short_address(address))
            return cached

        ttl = TRADER_TTL_PREFETCH if prefetch else TRADER_TTL_INTERACTIVE
        return await self._cache.get_or_fetch(
            cache_key, lambda: self._fetch_and_build(address), ttl=ttl
        )

    async def _fetch_and_build(self, address: str) -> TraderSnapshot:
        logger.info("Fetching data for %s", short_address(address))

        results = await asyncio.gather(
            self._client.fetch_positions(address),
            self._client.fetch_trades(address),
            self._client.fetch_value(address),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        positions, trades, current_value = results

        closed_rows = await self._closed_fetcher.fetch_all(address)

        return build_snapshot(
            address,
            positions,
            trades,
            current_value,
            closed_rows,
            now=int(self._clock()),
        )
