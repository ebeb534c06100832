"""Paginated fetch of a wallet's closed positions.

The closed-positions endpoint has no total count, so the fetcher walks
offset pages of 50 and stops on the first short or empty page.  A 429
answer is retried at the same offset after a delay; any other failure
ends the walk and whatever was accumulated so far is returned and cached.
The merged list is cached for five minutes under ``closed-<address>``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from tracker.addresses import short_address
from tracker.cache import CacheLayer
from tracker.config import (
    CLOSED_KEY_PREFIX,
    CLOSED_PAGE_SIZE,
    CLOSED_POSITIONS_TTL,
    PAGE_DELAY_SECONDS,
    RATE_LIMIT_DELAY_SECONDS,
)
from tracker.models import RawPosition
from tracker.polymarket_client import (
    ClosedPositionsPage,
    DataAPIClient,
    DataAPIError,
    DataAPIRateLimitError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How long to wait after a 429 and how many times to try a page.

    The defaults reproduce the upstream-friendly behaviour the dashboard
    has always had: a fixed 2 s wait and no attempt cap.

    Attributes:
        delay: Wait before the first retry, in seconds.
        backoff_factor: Multiplier applied to the delay for each further retry.
        max_delay: Upper bound on a single wait, or ``None`` for no bound.
        max_attempts: Total attempts per page including the first, or
            ``None`` to retry forever.
    """

    delay: float = RATE_LIMIT_DELAY_SECONDS
    backoff_factor: float = 1.0
    max_delay: float | None = None
    max_attempts: int | None = None

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number *retry* (1-based)."""
        wait = self.delay * (self.backoff_factor ** (retry - 1))
        if self.max_delay is not None:
            wait = min(wait, self.max_delay)
        return wait

    def allows(self, attempts: int) -> bool:
        """Whether another attempt may follow *attempts* failed ones."""
        return self.max_attempts is None or attempts < self.max_attempts


def closed_cache_key(address: str) -> str:
    return f"{CLOSED_KEY_PREFIX}{address}"


class ClosedPositionFetcher:
    """Fetches and caches the full closed-position history of a wallet."""

    def __init__(
        self,
        client: DataAPIClient,
        cache: CacheLayer,
        retry_policy: RetryPolicy | None = None,
        page_size: int = CLOSED_PAGE_SIZE,
        page_delay: float = PAGE_DELAY_SECONDS,
        ttl: float = CLOSED_POSITIONS_TTL,
    ) -> None:
        self._client = client
        self._cache = cache
        self._retry_policy = retry_policy or RetryPolicy()
        self._page_size = page_size
        self._page_delay = page_delay
        self._ttl = ttl

    async def fetch_all(self, address: str) -> list[RawPosition]:
        """Return every closed position row for *address*, in upstream order.

        Never raises for upstream conditions: a non-429 error or a transport
        failure truncates the result to the pages already received.
        """
        cache_key = closed_cache_key(address)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        rows: list[RawPosition] = []
        offset = 0

        while True:
            page = await self._fetch_page(address, offset)
            if page is None or page.received == 0:
                break

            rows.extend(page.rows)
            offset += page.received
            logger.info(
                "Fetched %d closed positions for %s", len(rows), short_address(address)
            )

            if page.received < self._page_size:
                break

            await asyncio.sleep(self._page_delay)

        self._cache.set(cache_key, rows, ttl=self._ttl)
        return rows

    async def _fetch_page(self, address: str, offset: int) -> ClosedPositionsPage | None:
        """Fetch one page, retrying on 429.  ``None`` means stop paginating."""
        attempts = 0
        while True:
            attempts += 1
            try:
                return await self._client.fetch_closed_positions_page(
                    address, offset=offset, limit=self._page_size
                )
            except DataAPIRateLimitError:
                if not self._retry_policy.allows(attempts):
                    logger.warning(
                        "Rate limited at offset %d for %s after %d attempts, stopping",
                        offset,
                        short_address(address),
                        attempts,
                    )
                    return None
                wait = self._retry_policy.delay_for(attempts)
                logger.info(
                    "Rate limited at offset %d for %s, waiting %.1fs",
                    offset,
                    short_address(address),
                    wait,
                )
                await asyncio.sleep(wait)
            except DataAPIError as exc:
                logger.warning(
                    "Closed positions fetch for %s stopped at offset %d: %s",
                    short_address(address),
                    offset,
                    exc,
                )
                return None
