"""Background cache warming for watched wallets.

Shortly after start-up, and then every five minutes, every address on
anyone's watchlist is re-aggregated with the prefetch TTL so the dashboard
usually finds a warm snapshot.  Addresses are processed one at a time with
a short pause between them to keep pressure on the upstream API low.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from tracker.addresses import InvalidAddressError, normalize_address, short_address
from tracker.aggregator import TraderAggregator
from tracker.config import (
    REFRESH_ADDRESS_DELAY_SECONDS,
    REFRESH_INITIAL_DELAY_SECONDS,
    REFRESH_INTERVAL_SECONDS,
)

log = structlog.get_logger()


class AddressSource(Protocol):
    """Anything that can list the currently watched addresses."""

    def get_distinct_addresses(self) -> list[str]: ...


def _unique_addresses(raw: list[str]) -> list[str]:
    """Normalize, drop malformed entries and de-duplicate, keeping first-seen order."""
    seen: dict[str, None] = {}
    for address in raw:
        try:
            seen.setdefault(normalize_address(address), None)
        except InvalidAddressError:
            log.warning("refresh_skip_invalid_address", address=address)
    return list(seen)


async def refresh_watchlist_once(
    aggregator: TraderAggregator,
    watchlist: AddressSource,
    address_delay: float = REFRESH_ADDRESS_DELAY_SECONDS,
) -> int:
    """Re-aggregate every watched address once.  Returns the number refreshed.

    A failure for one address is logged and skipped.
    """
    addresses = _unique_addresses(watchlist.get_distinct_addresses())
    log.info("refresh_run_start", addresses=len(addresses))

    refreshed = 0
    for address in addresses:
        try:
            await aggregator.aggregate(address, prefetch=True)
            refreshed += 1
        except Exception:
            log.exception("refresh_address_error", address=short_address(address))
        await asyncio.sleep(address_delay)

    log.info("refresh_run_complete", refreshed=refreshed, failed=len(addresses) - refreshed)
    return refreshed


async def run_refresh_loop(
    aggregator: TraderAggregator,
    watchlist: AddressSource,
    initial_delay: float = REFRESH_INITIAL_DELAY_SECONDS,
    interval: float = REFRESH_INTERVAL_SECONDS,
    address_delay: float = REFRESH_ADDRESS_DELAY_SECONDS,
) -> None:
    """Run :func:`refresh_watchlist_once` forever until cancelled.

    Exceptions from a whole run (for instance the watchlist store failing)
    are caught and logged so the loop never dies.
    """
    log.info("refresh_loop_started", initial_delay=initial_delay, interval_sec=interval)
    await asyncio.sleep(initial_delay)

    loop = asyncio.get_running_loop()
    while True:
        started = loop.time()
        try:
            await refresh_watchlist_once(aggregator, watchlist, address_delay)
        except Exception:
            log.exception("refresh_run_error")

        # Runs start on a fixed cadence; a run longer than the interval
        # is followed immediately by the next one.
        await asyncio.sleep(max(0.0, interval - (loop.time() - started)))
