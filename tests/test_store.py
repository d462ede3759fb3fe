"""
Tests for the earnings store.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from et.store.earnings_store import EarningsStore
from et.types import (
    CanonicalEarningsEvent,
    EarningsSource,
    EarningsTiming,
    HistoricalEpsRecord,
)


def make_event(
    earnings_date: date,
    symbol: str = "AAPL",
    eps_estimate: float | None = 1.5,
    source: EarningsSource = EarningsSource.PRIMARY,
) -> CanonicalEarningsEvent:
    return CanonicalEarningsEvent(
        symbol=symbol,
        company_name="Apple Inc.",
        earnings_date=earnings_date,
        timing=EarningsTiming.AFTER,
        eps_estimate=eps_estimate,
        source=source,
    )


class TestStoreLifecycle:
    """Test init and close."""

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises(self, temp_dir: Path) -> None:
        store = EarningsStore(temp_dir / "x.db")

        with pytest.raises(RuntimeError, match="not initialized"):
            await store.ping()

    @pytest.mark.asyncio
    async def test_ping(self, store: EarningsStore) -> None:
        assert await store.ping() is True


class TestEarningsEvents:
    """Test upcoming-event persistence."""

    @pytest.mark.asyncio
    async def test_upsert_overwrites_on_symbol_and_date(self, store: EarningsStore) -> None:
        day = date(2030, 1, 30)
        await store.upsert_earnings_event(make_event(day, eps_estimate=1.5))
        await store.upsert_earnings_event(
            make_event(day, eps_estimate=1.9, source=EarningsSource.SECONDARY)
        )

        events = await store.get_upcoming_events("AAPL", date(2030, 1, 1))

        assert len(events) == 1
        assert events[0].eps_estimate == 1.9
        assert events[0].source == EarningsSource.SECONDARY

    @pytest.mark.asyncio
    async def test_upcoming_filters_sorts_and_limits(self, store: EarningsStore) -> None:
        today = date(2030, 1, 1)
        for day in [date(2029, 12, 1), date(2030, 7, 1), date(2030, 1, 1), date(2030, 4, 1),
                    date(2030, 10, 1), date(2031, 1, 1)]:
            await store.upsert_earnings_event(make_event(day))
        await store.upsert_earnings_event(make_event(date(2030, 2, 1), symbol="MSFT"))

        events = await store.get_upcoming_events("aapl", today, limit=4)

        assert [e.earnings_date for e in events] == [
            date(2030, 1, 1),
            date(2030, 4, 1),
            date(2030, 7, 1),
            date(2030, 10, 1),
        ]


class TestCompanies:
    """Test company rows."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: EarningsStore) -> None:
        created = await store.create_company("aapl", "Apple Inc.")
        fetched = await store.get_company("AAPL")

        assert fetched is not None
        assert fetched.id == created.id
        assert fetched.ticker == "AAPL"
        assert fetched.cik is None

    @pytest.mark.asyncio
    async def test_get_missing(self, store: EarningsStore) -> None:
        assert await store.get_company("ZZZZ") is None

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, store: EarningsStore) -> None:
        first = await store.get_or_create_company("NVDA")
        second = await store.get_or_create_company("NVDA", "NVIDIA")

        assert first.id == second.id
        assert second.company_name == "NVDA"

    @pytest.mark.asyncio
    async def test_set_cik(self, store: EarningsStore) -> None:
        company = await store.create_company("AAPL")
        await store.set_company_cik(company.id, "0000320193")

        fetched = await store.get_company("AAPL")
        assert fetched is not None
        assert fetched.cik == "0000320193"


class TestHistoricalEps:
    """Test historical EPS rows."""

    @pytest.mark.asyncio
    async def test_upsert_merges_on_period(self, store: EarningsStore) -> None:
        company = await store.create_company("AAPL")
        await store.upsert_historical_eps(
            [
                HistoricalEpsRecord(company.id, "Q1 2024", 1.50, date(2024, 5, 3)),
                HistoricalEpsRecord(company.id, "Q2 2024", 1.40, date(2024, 8, 2)),
            ]
        )
        await store.upsert_historical_eps(
            [HistoricalEpsRecord(company.id, "Q1 2024", 1.53, date(2024, 5, 10))]
        )

        rows = await store.list_historical_eps(company.id)

        assert [(r.fiscal_period, r.eps_actual) for r in rows] == [
            ("Q2 2024", 1.40),
            ("Q1 2024", 1.53),
        ]

    @pytest.mark.asyncio
    async def test_replace_drops_old_rows(self, store: EarningsStore) -> None:
        company = await store.create_company("AAPL")
        await store.upsert_historical_eps(
            [
                HistoricalEpsRecord(company.id, "Q1 2023", 1.52, date(2023, 5, 5)),
                HistoricalEpsRecord(company.id, "Q2 2023", 1.26, date(2023, 8, 4)),
            ]
        )

        count = await store.replace_historical_eps(
            company.id,
            [HistoricalEpsRecord(company.id, "Q1 2024", 1.53, date(2024, 5, 3))],
        )
        rows = await store.list_historical_eps(company.id)

        assert count == 1
        assert [r.fiscal_period for r in rows] == ["Q1 2024"]

    @pytest.mark.asyncio
    async def test_delete(self, store: EarningsStore) -> None:
        company = await store.create_company("AAPL")
        await store.upsert_historical_eps(
            [HistoricalEpsRecord(company.id, "Q1 2024", 1.53, date(2024, 5, 3))]
        )

        assert await store.delete_historical_eps(company.id) == 1
        assert await store.list_historical_eps(company.id) == []
