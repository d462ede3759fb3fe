"""
Source fallback aggregator for upcoming earnings.

Resolution order for a symbol:
1. TTL cache (``earnings:{SYMBOL}``)
2. Persisted store: events dated today or later, soonest first, at most 4
3. Market-data adapters in order (primary, then secondary)

The first source with data wins; results are never merged across sources.
Adapter hits are written back to the store one row at a time and cached for
24 hours; store hits are cached for 1 hour. A lookup that found nothing is
returned with ``source=None`` and is not cached; its ``failed_sources`` tells
an empty answer apart from unreachable upstreams.
"""

from __future__ import annotations

from typing import Sequence

from et.cache.base import CacheProtocol
from et.data.base import UpstreamAdapter
from et.logging import get_logger, log_context
from et.store.earnings_store import EarningsStore
from et.types import (
    AdapterStatus,
    CanonicalEarningsEvent,
    EarningsLookup,
    EarningsSource,
    today_utc,
)

logger = get_logger(__name__)

PERSISTED_TTL_HOURS = 1
UPSTREAM_TTL_HOURS = 24
UPCOMING_LIMIT = 4


def cache_key(symbol: str) -> str:
    """Cache key for a symbol's earnings lookup."""
    return f"earnings:{symbol.upper()}"


class EarningsAggregator:
    """Resolves upcoming earnings for a symbol across cache, store and adapters."""

    def __init__(
        self,
        store: EarningsStore,
        cache: CacheProtocol,
        adapters: Sequence[UpstreamAdapter[CanonicalEarningsEvent]],
    ) -> None:
        """Initialize the aggregator.

        Args:
            store: Persisted store queried before any upstream.
            cache: TTL cache holding serialized lookups.
            adapters: Market-data adapters, tried in order.
        """
        self.store = store
        self.cache = cache
        self.adapters = list(adapters)

    async def get_events(self, symbol: str) -> EarningsLookup:
        """Get upcoming earnings for ``symbol`` from the first source that has any."""
        symbol = symbol.upper()
        key = cache_key(symbol)

        with log_context(ticker=symbol):
            cached = await self.cache.get(key)
            if cached is not None:
                logger.debug("Earnings cache hit", key=key)
                return EarningsLookup.from_dict(cached)

            stored = await self.store.get_upcoming_events(
                symbol, today_utc(), limit=UPCOMING_LIMIT
            )
            if stored:
                lookup = EarningsLookup(
                    symbol=symbol,
                    events=tuple(e.with_source(EarningsSource.PERSISTED) for e in stored),
                    source=EarningsSource.PERSISTED,
                )
                await self.cache.set(key, lookup.to_dict(), PERSISTED_TTL_HOURS)
                logger.info("Serving persisted earnings", count=len(stored))
                return lookup

            failed: list[EarningsSource] = []
            for adapter in self.adapters:
                result = await adapter.fetch(symbol)
                if result.status == AdapterStatus.FAILED:
                    failed.append(result.source)
                if not result.has_data:
                    logger.info(
                        "Source had no earnings",
                        source=adapter.source_name,
                        status=result.status.value,
                        error=result.error,
                    )
                    continue

                events = tuple(e.with_source(result.source) for e in result.items)
                await self._persist(events)

                lookup = EarningsLookup(
                    symbol=symbol,
                    events=events,
                    source=result.source,
                    failed_sources=tuple(failed),
                )
                await self.cache.set(key, lookup.to_dict(), UPSTREAM_TTL_HOURS)
                logger.info(
                    "Serving upstream earnings",
                    source=adapter.source_name,
                    count=len(events),
                )
                return lookup

            logger.info("No earnings data from any source", failed=[s.value for s in failed])
            return EarningsLookup(symbol=symbol, failed_sources=tuple(failed))

    async def _persist(self, events: Sequence[CanonicalEarningsEvent]) -> None:
        for event in events:
            try:
                await self.store.upsert_earnings_event(event)
            except Exception as e:
                logger.error(
                    "Failed to persist earnings event",
                    earnings_date=event.earnings_date.isoformat(),
                    error=str(e),
                )
