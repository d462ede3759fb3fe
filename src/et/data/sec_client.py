"""
SEC EDGAR client for historical EPS.

Resolves tickers to CIKs through the published company_tickers.json table
and reads quarterly diluted/basic EPS out of the XBRL company-facts document.
Every request goes through the shared rate-limited fetch client, which sends
the identifying User-Agent the SEC requires and spaces requests at 100ms.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import orjson

from et.data.base import UpstreamAdapter
from et.data.fetch_client import SEC, RateLimitedFetchClient
from et.exceptions import NotFoundError, TransportError
from et.logging import get_logger
from et.types import AdapterResult, EarningsSource, HistoricalEpsEntry

logger = get_logger(__name__)

SEC_DATA_BASE = "https://data.sec.gov"
SEC_EDGAR_BASE = "https://www.sec.gov"
COMPANY_TICKERS_URL = f"{SEC_EDGAR_BASE}/files/company_tickers.json"

# Walked in order; the first concept reported in USD/shares wins.
EPS_CONCEPTS = (
    "EarningsPerShareDiluted",
    "EarningsPerShareBasic",
    "EarningsPerShare",
)
EPS_UNIT = "USD/shares"
QUARTERLY_FORM = "10-Q"


def format_cik(cik: str | int) -> str:
    """Zero-pad a CIK to the 10 digits EDGAR URLs expect."""
    return str(cik).strip().zfill(10)


def extract_quarterly_eps(facts: dict[str, Any]) -> list[HistoricalEpsEntry]:
    """Pull quarterly EPS entries out of an XBRL company-facts document.

    Only the first EPS concept that carries USD/shares units is used; values
    from different concepts are never mixed. Entries must come from a 10-Q
    and carry both fiscal-period and fiscal-year tags.

    Returns:
        Entries sorted by filing date, newest first.
    """
    gaap = (facts.get("facts") or {}).get("us-gaap") or {}

    entries: list[HistoricalEpsEntry] = []
    for concept in EPS_CONCEPTS:
        units = (gaap.get(concept) or {}).get("units") or {}
        values = units.get(EPS_UNIT)
        if not values:
            continue

        for fact in values:
            if fact.get("form") != QUARTERLY_FORM:
                continue
            fp, fy = fact.get("fp"), fact.get("fy")
            if not fp or not fy or fact.get("val") is None or not fact.get("filed"):
                continue
            entries.append(
                HistoricalEpsEntry(
                    fiscal_period=f"{fp} {fy}",
                    eps_actual=float(fact["val"]),
                    filing_date=date.fromisoformat(fact["filed"]),
                    period_end=date.fromisoformat(fact["end"]) if fact.get("end") else None,
                )
            )
        break

    entries.sort(key=lambda e: e.filing_date, reverse=True)
    return entries


class SECClient(UpstreamAdapter[HistoricalEpsEntry]):
    """Client for SEC EDGAR ticker lookup and XBRL facts.

    The ticker->CIK table is kept for the life of the process and reloaded
    only when a ticker is missing from it. A failed load is retried on the
    next lookup.
    """

    source = EarningsSource.SEC

    def __init__(self, fetch_client: RateLimitedFetchClient) -> None:
        """Initialize SEC client.

        Args:
            fetch_client: Shared rate-limited HTTP client.
        """
        self.fetch_client = fetch_client
        self._ticker_map: dict[str, str] | None = None

    @property
    def source_name(self) -> str:
        return "sec"

    async def _get_json(self, url: str) -> Any:
        response = await self.fetch_client.fetch(SEC, url)
        if response.status_code >= 400:
            raise TransportError(
                f"SEC request failed: {response.status_code}",
                context={"source": "sec", "url": url, "status_code": response.status_code},
            )
        return orjson.loads(response.content)

    async def get_ticker_map(self, refresh: bool = False) -> dict[str, str]:
        """Get the ticker -> zero-padded CIK table, loading it if needed."""
        if self._ticker_map is not None and not refresh:
            return self._ticker_map

        data = await self._get_json(COMPANY_TICKERS_URL)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected SEC ticker table: {type(data).__name__}")
        ticker_map: dict[str, str] = {}
        for entry in data.values():
            ticker = entry.get("ticker")
            if ticker and entry.get("cik_str") is not None:
                ticker_map.setdefault(ticker.upper(), format_cik(entry["cik_str"]))

        self._ticker_map = ticker_map
        logger.info("Loaded SEC ticker table", tickers=len(ticker_map))
        return ticker_map

    async def get_cik(self, ticker: str) -> str:
        """Look up CIK from ticker symbol.

        Returns:
            CIK number as string (zero-padded to 10 digits).

        Raises:
            NotFoundError: If the ticker is not in the SEC table.
            TransportError: If the table could not be fetched.
        """
        ticker = ticker.upper()
        loaded = self._ticker_map is None
        ticker_map = await self.get_ticker_map()
        cik = ticker_map.get(ticker)
        if cik is None and not loaded:
            # Newly listed tickers only show up after a reload.
            ticker_map = await self.get_ticker_map(refresh=True)
            cik = ticker_map.get(ticker)
        if cik is None:
            raise NotFoundError(
                f"Unable to find CIK for ticker {ticker}",
                context={"entity": "cik", "ticker": ticker},
            )
        return cik

    async def get_company_facts(self, cik: str) -> dict[str, Any]:
        """Get the XBRL company-facts document for a filer."""
        url = f"{SEC_DATA_BASE}/api/xbrl/companyfacts/CIK{format_cik(cik)}.json"
        return await self._get_json(url)

    async def get_historical_eps(self, cik: str) -> list[HistoricalEpsEntry]:
        """Get quarterly EPS for a filer, newest filing first."""
        facts = await self.get_company_facts(cik)
        entries = extract_quarterly_eps(facts)
        logger.info("Extracted quarterly EPS", cik=format_cik(cik), count=len(entries))
        return entries

    async def fetch_by_cik(self, ticker: str, cik: str) -> AdapterResult[HistoricalEpsEntry]:
        """Adapter-style fetch for a ticker whose CIK is already known."""
        return await self._guarded(ticker.upper(), lambda _: self.get_historical_eps(cik))

    async def _fetch_items(self, ticker: str) -> list[HistoricalEpsEntry]:
        cik = await self.get_cik(ticker)
        return await self.get_historical_eps(cik)
