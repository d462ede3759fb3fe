"""
Wiring for the long-lived objects shared by the API and the CLI.

One fetch client, one cache, one store and one rate guard per process.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from et.cache import CacheProtocol, create_cache
from et.config import Settings
from et.data.alpha_vantage_client import AlphaVantageClient
from et.data.fetch_client import RateLimitedFetchClient, create_fetch_client
from et.data.polygon_client import PolygonClient
from et.data.sec_client import SECClient
from et.logging import get_logger
from et.services.aggregator import EarningsAggregator
from et.services.dispatcher import RefreshDispatcher
from et.services.rate_guard import RequestRateGuard
from et.services.reconciler import HistoricalEpsReconciler
from et.store.earnings_store import EarningsStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Process-wide service graph."""

    settings: Settings
    fetch_client: RateLimitedFetchClient
    cache: CacheProtocol
    store: EarningsStore
    sec: SECClient
    aggregator: EarningsAggregator
    reconciler: HistoricalEpsReconciler
    dispatcher: RefreshDispatcher
    rate_guard: RequestRateGuard

    async def close(self) -> None:
        await self.fetch_client.close()
        await self.store.close()


async def build_services(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    """Build and initialize every service from settings.

    Args:
        settings: Application settings.
        transport: Optional httpx transport for all outbound calls.
    """
    fetch_client = create_fetch_client(settings, transport=transport)
    cache = create_cache(settings.CACHE_BACKEND)

    store = EarningsStore(settings.DATABASE_PATH)
    await store.init()

    sec = SECClient(fetch_client)
    adapters = [
        PolygonClient(fetch_client, settings.POLYGON_API_KEY),
        AlphaVantageClient(fetch_client, settings.ALPHA_VANTAGE_API_KEY),
    ]

    services = Services(
        settings=settings,
        fetch_client=fetch_client,
        cache=cache,
        store=store,
        sec=sec,
        aggregator=EarningsAggregator(store, cache, adapters),
        reconciler=HistoricalEpsReconciler(
            store, sec, freshness_days=settings.EPS_FRESHNESS_DAYS
        ),
        dispatcher=RefreshDispatcher(settings, fetch_client),
        rate_guard=RequestRateGuard(
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            cleanup_probability=settings.RATE_LIMIT_CLEANUP_PROBABILITY,
        ),
    )
    logger.info(
        "Services ready",
        sources=settings.available_sources,
        cache=settings.CACHE_BACKEND,
        dispatch_configured=settings.dispatch_configured,
    )
    return services
