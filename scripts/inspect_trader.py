"""Aggregate one wallet against the live Polymarket data API and print a summary.

Exercises the full path: parallel positions/trades/value fetch, closed
position pagination with rate-limit retry, statistics derivation and the
cache (the second aggregation must be served from it).

Usage:
    python scripts/inspect_trader.py 0xYourWalletAddress
"""

import asyncio
import logging
import sys
import time

from tracker.addresses import InvalidAddressError, normalize_address
from tracker.aggregator import TraderAggregator
from tracker.cache import CacheLayer
from tracker.polymarket_client import DataAPIClient, DataAPIError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger("inspect_trader")


async def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print(__doc__)
        return 2

    try:
        address = normalize_address(argv[1])
    except InvalidAddressError as exc:
        print(exc)
        return 2

    cache = CacheLayer()
    async with DataAPIClient() as client:
        aggregator = TraderAggregator(client, cache)

        t0 = time.monotonic()
        try:
            snapshot = await aggregator.aggregate(address)
        except DataAPIError as exc:
            print(f"FAILED: {exc}")
            return 1
        elapsed = time.monotonic() - t0

        again = await aggregator.aggregate(address)
        if again is not snapshot:
            print("FAILED: second aggregation was not served from cache")
            return 1

    print("=" * 60)
    print(f"Trader {address} ({snapshot.pseudonym or 'no pseudonym'})")
    print("=" * 60)
    if not snapshot.found:
        print("No positions or trades found.")
        return 0

    print(f"  Current value:   ${snapshot.current_value:,.2f}")
    print(f"  Total P&L:       ${snapshot.total_pnl:,.2f}")
    print(f"  P&L 1d/1w/1m:    ${snapshot.pnl_1d:,.2f} / ${snapshot.pnl_1w:,.2f} / ${snapshot.pnl_1m:,.2f}")
    print(f"  Win rate:        {snapshot.win_rate}% ({snapshot.wins}W / {snapshot.losses}L)")
    print(f"  Volume:          ${snapshot.total_volume:,.2f}")
    print(f"  Positions:       {snapshot.open_position_count} open, {snapshot.closed_position_count} closed")
    print(f"  Trades:          {snapshot.total_trades} (largest ${snapshot.largest_trade:,.2f}, avg ${snapshot.avg_trade_size:,.2f})")
    if snapshot.notable_bets:
        print("  Notable markets:")
        for title in snapshot.notable_bets:
            print(f"    - {title}")
    print()
    print(f"Aggregated in {elapsed:.1f}s, {len(cache)} cache entries")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv)))
