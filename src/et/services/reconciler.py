"""
Historical EPS reconciler.

Keeps the persisted quarterly EPS rows for a company in line with SEC XBRL
filings. Three entry points:

- get_historical_eps: lazy. Serves stored rows while the newest filing is
  recent, otherwise merges fresh SEC data into the store.
- refresh_historical_eps: force. Replaces every stored row with the fresh set.
- quick_fetch: first-time population for a newly watched ticker.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Sequence

from et.data.sec_client import SECClient
from et.exceptions import NotFoundError, TransportError
from et.logging import get_logger, log_context
from et.store.earnings_store import EarningsStore
from et.types import (
    AdapterStatus,
    Company,
    HistoricalEpsEntry,
    HistoricalEpsRecord,
    today_utc,
)

logger = get_logger(__name__)

QUICK_FETCH_LIMIT = 8


def dedup_keep_first(entries: Iterable[HistoricalEpsEntry]) -> list[HistoricalEpsEntry]:
    """Drop repeated fiscal periods, keeping the first occurrence of each.

    Input is newest-filing-first, so the kept entry is the most recent filing.
    """
    seen: set[str] = set()
    unique: list[HistoricalEpsEntry] = []
    for entry in entries:
        if entry.fiscal_period in seen:
            continue
        seen.add(entry.fiscal_period)
        unique.append(entry)
    return unique


class HistoricalEpsReconciler:
    """Reconciles stored historical EPS with SEC filings."""

    def __init__(
        self,
        store: EarningsStore,
        sec_client: SECClient,
        freshness_days: int = 7,
    ) -> None:
        self.store = store
        self.sec = sec_client
        self.freshness_days = freshness_days

    async def get_historical_eps(self, ticker: str) -> list[HistoricalEpsRecord]:
        """Get EPS rows for ``ticker``, refreshing from SEC when stale.

        Stored rows are returned untouched when the newest filing is less than
        ``freshness_days`` old. If SEC cannot be reached, whatever is stored is
        returned.

        Raises:
            NotFoundError: If the company is unknown or has no CIK.
        """
        ticker = ticker.upper()
        with log_context(ticker=ticker):
            company = await self._require_company(ticker)
            existing = await self.store.list_historical_eps(company.id)
            if self._is_fresh(existing):
                logger.debug("Historical EPS is fresh", latest=existing[0].filing_date.isoformat())
                return existing

            try:
                cik = await self._resolve_cik(company)
            except TransportError as e:
                logger.warning("SEC unavailable, serving stored EPS", error=str(e))
                return existing

            result = await self.sec.fetch_by_cik(ticker, cik)
            if result.status == AdapterStatus.FAILED:
                logger.warning("SEC fetch failed, serving stored EPS", error=result.error)
                return existing
            if not result.items:
                return existing

            entries = dedup_keep_first(result.items)
            written = await self.store.upsert_historical_eps(
                HistoricalEpsRecord.from_entry(company.id, e) for e in entries
            )
            logger.info("Merged historical EPS", count=written)
            return await self.store.list_historical_eps(company.id)

    async def refresh_historical_eps(self, ticker: str) -> int:
        """Replace all stored EPS rows for ``ticker`` with a fresh SEC set.

        Returns:
            Number of rows inserted.

        Raises:
            NotFoundError: If the company is unknown or has no CIK.
            TransportError: If SEC data could not be fetched; stored rows are kept.
        """
        ticker = ticker.upper()
        with log_context(ticker=ticker):
            company = await self._require_company(ticker)
            entries = await self._fetch_entries(company)
            count = await self.store.replace_historical_eps(
                company.id,
                [HistoricalEpsRecord.from_entry(company.id, e) for e in entries],
            )
            return count

    async def quick_fetch(self, ticker: str, company_name: str | None = None) -> int:
        """Populate EPS for a newly watched ticker from its latest filings.

        Creates the company row when absent, takes the 8 most recent entries
        and upserts one row per fiscal period.

        Returns:
            Number of rows written.
        """
        ticker = ticker.upper()
        with log_context(ticker=ticker):
            company = await self.store.get_or_create_company(ticker, company_name)
            entries = await self._fetch_entries(company, limit=QUICK_FETCH_LIMIT)
            count = await self.store.upsert_historical_eps(
                HistoricalEpsRecord.from_entry(company.id, e) for e in entries
            )
            logger.info("Quick-fetched historical EPS", count=count)
            return count

    async def _fetch_entries(
        self,
        company: Company,
        limit: int | None = None,
    ) -> list[HistoricalEpsEntry]:
        cik = await self._resolve_cik(company)
        result = await self.sec.fetch_by_cik(company.ticker, cik)
        if result.status == AdapterStatus.FAILED:
            raise TransportError(
                f"Unable to fetch SEC data for {company.ticker}",
                context={"source": "sec", "ticker": company.ticker, "error": result.error},
            )
        raw: Sequence[HistoricalEpsEntry] = result.items
        if limit is not None:
            raw = raw[:limit]
        return dedup_keep_first(raw)

    async def _require_company(self, ticker: str) -> Company:
        company = await self.store.get_company(ticker)
        if company is None:
            raise NotFoundError(
                "Company not found. Please search for it first.",
                context={"entity": "company", "ticker": ticker},
            )
        return company

    async def _resolve_cik(self, company: Company) -> str:
        if company.cik:
            return company.cik
        cik = await self.sec.get_cik(company.ticker)
        await self.store.set_company_cik(company.id, cik)
        return cik

    def _is_fresh(self, records: Sequence[HistoricalEpsRecord]) -> bool:
        if not records:
            return False
        cutoff = today_utc() - timedelta(days=self.freshness_days)
        return records[0].filing_date > cutoff
