"""
Polygon.io client: the primary source for upcoming earnings.

Reads the Benzinga-backed earnings endpoint and normalizes each entry into a
CanonicalEarningsEvent with date, time of day, estimate and actual EPS.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any

import orjson

from et.data.base import UpstreamAdapter
from et.data.fetch_client import POLYGON, RateLimitedFetchClient
from et.exceptions import ConfigurationError, ConfigurationErrorKind, TransportError
from et.logging import get_logger
from et.types import CanonicalEarningsEvent, EarningsSource, EarningsTiming

logger = get_logger(__name__)

POLYGON_BASE_URL = "https://api.polygon.io"
EARNINGS_ENDPOINT = "/benzinga/v1/earnings"

MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)


def _timing_from_clock(raw: str) -> EarningsTiming:
    """Classify an "HH:MM[:SS]" Eastern time against the regular session."""
    try:
        parts = [int(p) for p in raw.split(":")[:2]]
        at = time(parts[0], parts[1] if len(parts) > 1 else 0)
    except (ValueError, IndexError):
        return EarningsTiming.UNKNOWN
    if at < MARKET_OPEN:
        return EarningsTiming.BEFORE
    if at >= MARKET_CLOSE:
        return EarningsTiming.AFTER
    return EarningsTiming.DURING


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def parse_polygon_earning(symbol: str, raw: dict[str, Any]) -> CanonicalEarningsEvent | None:
    """Normalize one Polygon earnings entry; None when it has no date."""
    report_date = raw.get("date") or raw.get("report_date")
    if not report_date:
        return None

    time_label = raw.get("time_of_day") or raw.get("time")
    timing = EarningsTiming.normalize(time_label)
    if timing == EarningsTiming.UNKNOWN and isinstance(time_label, str) and ":" in time_label:
        timing = _timing_from_clock(time_label)

    fiscal_year = raw.get("fiscal_year")
    return CanonicalEarningsEvent(
        symbol=symbol,
        company_name=raw.get("company_name") or raw.get("name") or symbol,
        earnings_date=date.fromisoformat(str(report_date)[:10]),
        timing=timing,
        eps_estimate=_optional_float(raw.get("estimated_eps", raw.get("eps_estimate"))),
        eps_actual=_optional_float(raw.get("actual_eps", raw.get("eps_actual"))),
        surprise_percent=_optional_float(raw.get("eps_surprise_percent")),
        fiscal_period=str(raw.get("fiscal_period") or ""),
        fiscal_year=int(fiscal_year) if fiscal_year else None,
        source=EarningsSource.PRIMARY,
    )


class PolygonClient(UpstreamAdapter[CanonicalEarningsEvent]):
    """Primary market-data adapter backed by Polygon.io."""

    source = EarningsSource.PRIMARY

    def __init__(
        self,
        fetch_client: RateLimitedFetchClient,
        api_key: str | None,
        limit: int = 8,
    ) -> None:
        """Initialize Polygon client.

        Args:
            fetch_client: Shared rate-limited HTTP client.
            api_key: Polygon API key. Without one every fetch fails softly.
            limit: Maximum entries requested per symbol.
        """
        self.fetch_client = fetch_client
        self.api_key = api_key
        self.limit = limit

        if not self.api_key:
            logger.warning("POLYGON_API_KEY not set - primary source disabled")

    @property
    def source_name(self) -> str:
        return "polygon"

    async def _fetch_items(self, ticker: str) -> list[CanonicalEarningsEvent]:
        if not self.api_key:
            raise ConfigurationError(
                "POLYGON_API_KEY not configured",
                kind=ConfigurationErrorKind.MISSING_CREDENTIALS,
            )

        response = await self.fetch_client.fetch(
            POLYGON,
            f"{POLYGON_BASE_URL}{EARNINGS_ENDPOINT}",
            params={
                "ticker": ticker,
                "limit": self.limit,
                "apiKey": self.api_key,
            },
        )
        self._check_response(response.status_code, ticker)
        if response.status_code == 404:
            return []

        data = orjson.loads(response.content)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected Polygon payload: {type(data).__name__}")

        events: list[CanonicalEarningsEvent] = []
        for raw in data.get("results") or []:
            try:
                event = parse_polygon_earning(ticker, raw)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed Polygon entry", error=repr(e))
                continue
            if event is not None:
                events.append(event)
        return events

    @staticmethod
    def _check_response(status_code: int, ticker: str) -> None:
        context = {"source": "polygon", "ticker": ticker, "status_code": status_code}
        if status_code == 429:
            raise TransportError("Polygon rate limited", context=context)
        if status_code in (401, 403):
            raise TransportError("Polygon authentication failed", context=context)
        if status_code >= 400 and status_code != 404:
            raise TransportError(f"Polygon API error: {status_code}", context=context)
