"""
Alpha Vantage client: the secondary source for upcoming earnings.

EARNINGS_CALENDAR answers with CSV. When the free tier throttles a key, or the
symbol is rejected, the endpoint answers 200 with a JSON body instead; those
bodies are treated as failures so the caller can fall through.
"""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any

import orjson

from et.data.base import UpstreamAdapter
from et.data.fetch_client import ALPHA_VANTAGE, RateLimitedFetchClient
from et.exceptions import ConfigurationError, ConfigurationErrorKind, TransportError
from et.logging import get_logger
from et.types import CanonicalEarningsEvent, EarningsSource, EarningsTiming

logger = get_logger(__name__)

ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"
DEFAULT_HORIZON = "3month"

# JSON keys Alpha Vantage uses for throttle notices and rejected requests.
ERROR_KEYS = ("Error Message", "Note", "Information")


def _fiscal_period_from(fiscal_date_ending: str) -> tuple[str, int | None]:
    # Alpha Vantage only gives the period end date; keep it as the label.
    try:
        end = date.fromisoformat(fiscal_date_ending)
    except ValueError:
        return "", None
    return end.isoformat(), end.year


def parse_earnings_calendar(symbol: str, text: str) -> list[CanonicalEarningsEvent]:
    """Parse an EARNINGS_CALENDAR CSV body into canonical events.

    Rows for other symbols, rows without a report date and rows that do not
    parse are skipped.
    """
    events: list[CanonicalEarningsEvent] = []
    reader = csv.DictReader(io.StringIO(text))
    for row in reader:
        row = {(k or "").strip(): (v or "").strip() for k, v in row.items()}
        row_symbol = row.get("symbol", symbol).upper()
        if row_symbol != symbol or not row.get("reportDate"):
            continue

        fiscal_period, fiscal_year = _fiscal_period_from(row.get("fiscalDateEnding", ""))
        estimate = row.get("estimate")
        try:
            event = CanonicalEarningsEvent(
                symbol=symbol,
                company_name=row.get("name") or symbol,
                earnings_date=date.fromisoformat(row["reportDate"]),
                timing=EarningsTiming.normalize(row.get("timeOfTheDay")),
                eps_estimate=float(estimate) if estimate else None,
                fiscal_period=fiscal_period,
                fiscal_year=fiscal_year,
                source=EarningsSource.SECONDARY,
            )
        except ValueError as e:
            logger.warning("Skipping malformed calendar row", error=repr(e))
            continue
        events.append(event)

    events.sort(key=lambda e: e.earnings_date)
    return events


def _json_error(text: str) -> str | None:
    """Return the error message if ``text`` is an Alpha Vantage JSON notice."""
    stripped = text.lstrip()
    if not stripped.startswith("{"):
        return None
    try:
        payload: Any = orjson.loads(stripped)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    for key in ERROR_KEYS:
        if payload.get(key):
            return str(payload[key])
    return "unexpected JSON response"


class AlphaVantageClient(UpstreamAdapter[CanonicalEarningsEvent]):
    """Secondary market-data adapter backed by Alpha Vantage."""

    source = EarningsSource.SECONDARY

    def __init__(
        self,
        fetch_client: RateLimitedFetchClient,
        api_key: str | None,
        horizon: str = DEFAULT_HORIZON,
    ) -> None:
        self.fetch_client = fetch_client
        self.api_key = api_key
        self.horizon = horizon

        if not self.api_key:
            logger.warning("ALPHA_VANTAGE_API_KEY not set - secondary source disabled")

    @property
    def source_name(self) -> str:
        return "alphavantage"

    async def _fetch_items(self, ticker: str) -> list[CanonicalEarningsEvent]:
        if not self.api_key:
            raise ConfigurationError(
                "ALPHA_VANTAGE_API_KEY not configured",
                kind=ConfigurationErrorKind.MISSING_CREDENTIALS,
            )

        response = await self.fetch_client.fetch(
            ALPHA_VANTAGE,
            ALPHA_VANTAGE_BASE_URL,
            params={
                "function": "EARNINGS_CALENDAR",
                "symbol": ticker,
                "horizon": self.horizon,
                "apikey": self.api_key,
            },
        )
        if response.status_code >= 400:
            raise TransportError(
                f"Alpha Vantage API error: {response.status_code}",
                context={
                    "source": "alphavantage",
                    "ticker": ticker,
                    "status_code": response.status_code,
                },
            )

        text = response.text
        error = _json_error(text)
        if error is not None:
            raise TransportError(
                f"Alpha Vantage refused request: {error}",
                context={"source": "alphavantage", "ticker": ticker},
            )

        return parse_earnings_calendar(ticker, text)
