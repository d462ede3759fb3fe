"""
Rate-limited HTTP client shared by every upstream adapter.

Each upstream class (SEC, Polygon, Alpha Vantage, GitHub) gets its own
minimum spacing between dispatched requests. Spacing is measured against the
last dispatch time recorded for that class, so two calls to the same upstream
never start closer together than the configured interval (approximately, under
concurrency: two coroutines may read the same timestamp and both proceed).

Non-2xx responses are returned to the caller untouched. Network failures
surface as SourceUnavailableError after tenacity has retried them.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from et.config import Settings
from et.exceptions import SourceUnavailableError
from et.logging import get_logger

logger = get_logger(__name__)

SEC = "sec"
POLYGON = "polygon"
ALPHA_VANTAGE = "alphavantage"
GITHUB = "github"


class DispatchSpacer:
    """Enforces a minimum interval between dispatches per upstream class."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_dispatch: dict[str, float] = {}
        self._lock = threading.Lock()

    def delay_for(self, upstream: str, interval: float) -> float:
        """Seconds to wait before the next dispatch to ``upstream``."""
        with self._lock:
            last = self._last_dispatch.get(upstream)
        if last is None:
            return 0.0
        elapsed = self._clock() - last
        return max(0.0, interval - elapsed)

    def record(self, upstream: str) -> None:
        with self._lock:
            self._last_dispatch[upstream] = self._clock()

    async def wait_turn(self, upstream: str, interval: float) -> float:
        """Sleep until ``upstream`` may be called again, then record the dispatch.

        Returns:
            The delay that was applied.
        """
        delay = self.delay_for(upstream, interval) if interval > 0 else 0.0
        if delay > 0:
            await asyncio.sleep(delay)
        self.record(upstream)
        return delay


class RateLimitedFetchClient:
    """Async HTTP client with per-upstream spacing and identifying headers."""

    def __init__(
        self,
        user_agent: str,
        intervals: dict[str, float] | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_wait_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
        spacer: DispatchSpacer | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            user_agent: Identifying User-Agent sent on every request.
            intervals: Minimum seconds between dispatches, keyed by upstream class.
            timeout: Per-request timeout in seconds.
            max_retries: Total attempts for network-level failures.
            retry_wait_seconds: Base of the exponential backoff between attempts.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            spacer: Shared dispatch spacer; one is created when omitted.
        """
        self.default_headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }
        self.intervals = intervals or {}
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_wait_seconds = retry_wait_seconds
        self._transport = transport
        self._spacer = spacer or DispatchSpacer()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(
        self,
        upstream: str,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json: Any = None,
        retry: bool = True,
    ) -> httpx.Response:
        """Send a request to ``url`` once ``upstream``'s spacing allows it.

        Args:
            upstream: Upstream class used for spacing (e.g., "sec").
            url: Absolute URL.
            method: HTTP method.
            params: Query parameters.
            headers: Extra headers; these override the identifying defaults.
            json: JSON body.
            retry: Retry network failures. Off for non-idempotent calls.

        Returns:
            The response, whatever its status code.

        Raises:
            SourceUnavailableError: If no response was received.
        """
        merged_headers = {**self.default_headers, **(headers or {})}
        interval = self.intervals.get(upstream, 0.0)
        client = await self._get_client()

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.max_retries if retry else 1),
                wait=wait_exponential(multiplier=self.retry_wait_seconds, max=10),
                reraise=True,
            ):
                with attempt:
                    await self._spacer.wait_turn(upstream, interval)
                    response = await client.request(
                        method,
                        url,
                        params=params,
                        headers=merged_headers,
                        json=json,
                    )
        except httpx.TransportError as e:
            logger.warning(
                "Upstream unreachable",
                upstream=upstream,
                url=_redact_url(url),
                error=type(e).__name__,
            )
            raise SourceUnavailableError(
                f"{upstream} unavailable: {type(e).__name__}",
                context={"source": upstream, "url": _redact_url(url), "error": str(e)},
            ) from e

        logger.debug(
            "Upstream responded",
            upstream=upstream,
            status_code=response.status_code,
        )
        return response


def _redact_url(url: str) -> str:
    return url.split("?", 1)[0]


def create_fetch_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RateLimitedFetchClient:
    """Build the shared fetch client from settings."""
    market_interval = settings.MARKET_DATA_MIN_INTERVAL_MS / 1000
    return RateLimitedFetchClient(
        user_agent=settings.SEC_USER_AGENT,
        intervals={
            SEC: settings.SEC_MIN_INTERVAL_MS / 1000,
            POLYGON: market_interval,
            ALPHA_VANTAGE: market_interval,
        },
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        max_retries=settings.HTTP_MAX_RETRIES,
        transport=transport,
    )
