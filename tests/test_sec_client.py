"""
Tests for the SEC EDGAR client.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from et.data.sec_client import SECClient, extract_quarterly_eps, format_cik
from et.exceptions import NotFoundError
from et.types import AdapterStatus

TICKERS = {
    "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
    "1": {"cik_str": 1652044, "ticker": "GOOGL", "title": "Alphabet Inc."},
}


def fact(fp: str | None, fy: int | None, val: float, filed: str, form: str = "10-Q") -> dict[str, Any]:
    return {"fp": fp, "fy": fy, "val": val, "filed": filed, "form": form, "end": "2024-03-30"}


def company_facts(concepts: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    return {
        "cik": 320193,
        "facts": {
            "us-gaap": {
                name: {"units": {"USD/shares": values}} for name, values in concepts.items()
            }
        },
    }


class TestExtractQuarterlyEps:
    """Test XBRL EPS extraction."""

    def test_prefers_diluted_and_never_mixes_concepts(self) -> None:
        facts = company_facts(
            {
                "EarningsPerShareBasic": [fact("Q1", 2024, 1.60, "2024-05-03")],
                "EarningsPerShareDiluted": [fact("Q1", 2024, 1.53, "2024-05-03")],
            }
        )

        entries = extract_quarterly_eps(facts)

        assert [e.eps_actual for e in entries] == [1.53]

    def test_falls_back_to_basic(self) -> None:
        facts = company_facts({"EarningsPerShareBasic": [fact("Q2", 2024, 1.40, "2024-08-02")]})

        entries = extract_quarterly_eps(facts)

        assert entries[0].fiscal_period == "Q2 2024"
        assert entries[0].filing_date == date(2024, 8, 2)

    def test_keeps_only_tagged_10q_facts(self) -> None:
        facts = company_facts(
            {
                "EarningsPerShareDiluted": [
                    fact("FY", 2023, 6.13, "2023-11-03", form="10-K"),
                    fact(None, 2024, 1.0, "2024-05-03"),
                    fact("Q1", None, 1.0, "2024-05-03"),
                    fact("Q1", 2024, 1.53, "2024-05-03"),
                ]
            }
        )

        entries = extract_quarterly_eps(facts)

        assert len(entries) == 1
        assert entries[0].fiscal_period == "Q1 2024"

    def test_sorted_newest_filing_first(self) -> None:
        facts = company_facts(
            {
                "EarningsPerShareDiluted": [
                    fact("Q1", 2024, 1.53, "2024-05-03"),
                    fact("Q3", 2024, 0.97, "2024-11-01"),
                    fact("Q2", 2024, 1.40, "2024-08-02"),
                ]
            }
        )

        entries = extract_quarterly_eps(facts)

        assert [e.fiscal_period for e in entries] == ["Q3 2024", "Q2 2024", "Q1 2024"]

    def test_no_eps_concepts(self) -> None:
        assert extract_quarterly_eps({"facts": {"us-gaap": {}}}) == []


def test_format_cik() -> None:
    assert format_cik(320193) == "0000320193"
    assert format_cik("0000320193") == "0000320193"


def sec_handler(
    facts: dict[str, Any] | None = None,
    tickers_status: int = 200,
    calls: list[str] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        if request.url.path == "/files/company_tickers.json":
            if tickers_status != 200:
                return httpx.Response(tickers_status)
            return httpx.Response(200, json=TICKERS)
        if request.url.path.startswith("/api/xbrl/companyfacts/"):
            return httpx.Response(200, json=facts or company_facts({}))
        return httpx.Response(404)

    return handler


class TestSECClientCIKLookup:
    """Test CIK lookup functionality."""

    @pytest.mark.asyncio
    async def test_get_cik_success(self, make_fetch_client) -> None:
        sec = SECClient(make_fetch_client(sec_handler()))

        assert await sec.get_cik("aapl") == "0000320193"
        assert await sec.get_cik("GOOGL") == "0001652044"

    @pytest.mark.asyncio
    async def test_ticker_table_loaded_once(self, make_fetch_client) -> None:
        calls: list[str] = []
        sec = SECClient(make_fetch_client(sec_handler(calls=calls)))

        await sec.get_cik("AAPL")
        await sec.get_cik("GOOGL")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_cached_table_reloaded_on_miss(self, make_fetch_client) -> None:
        calls: list[str] = []
        sec = SECClient(make_fetch_client(sec_handler(calls=calls)))

        await sec.get_cik("AAPL")
        with pytest.raises(NotFoundError):
            await sec.get_cik("NEWCO")

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_unknown_ticker(self, make_fetch_client) -> None:
        sec = SECClient(make_fetch_client(sec_handler()))

        with pytest.raises(NotFoundError):
            await sec.get_cik("ZZZZ")

    @pytest.mark.asyncio
    async def test_failed_table_load_is_not_cached(self, make_fetch_client) -> None:
        sec = SECClient(make_fetch_client(sec_handler(tickers_status=503)))

        result = await sec.fetch("AAPL")
        assert result.status == AdapterStatus.FAILED
        assert sec._ticker_map is None


class TestSECClientAdapter:
    """Test adapter-style fetches."""

    @pytest.mark.asyncio
    async def test_fetch_returns_entries(self, make_fetch_client) -> None:
        calls: list[str] = []
        facts = company_facts({"EarningsPerShareDiluted": [fact("Q1", 2024, 1.53, "2024-05-03")]})
        sec = SECClient(make_fetch_client(sec_handler(facts=facts, calls=calls)))

        result = await sec.fetch("AAPL")

        assert result.status == AdapterStatus.OK
        assert result.items[0].eps_actual == 1.53
        assert calls[-1] == "https://data.sec.gov/api/xbrl/companyfacts/CIK0000320193.json"

    @pytest.mark.asyncio
    async def test_fetch_empty_is_not_failure(self, make_fetch_client) -> None:
        sec = SECClient(make_fetch_client(sec_handler()))

        result = await sec.fetch("AAPL")

        assert result.status == AdapterStatus.EMPTY

    @pytest.mark.asyncio
    async def test_fetch_by_cik_skips_ticker_table(self, make_fetch_client) -> None:
        sec = SECClient(make_fetch_client(sec_handler()))

        with patch.object(sec, "get_ticker_map", new_callable=AsyncMock) as mock_map:
            result = await sec.fetch_by_cik("AAPL", "320193")

        mock_map.assert_not_called()
        assert result.status == AdapterStatus.EMPTY

    @pytest.mark.asyncio
    async def test_unparseable_body_is_failure(self, make_fetch_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>maintenance</html>")

        sec = SECClient(make_fetch_client(handler))
        result = await sec.fetch_by_cik("AAPL", "320193")

        assert result.status == AdapterStatus.FAILED
        assert "parse error" in (result.error or "")

    @pytest.mark.asyncio
    async def test_list_bodies_are_failures(self, make_fetch_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[])

        sec = SECClient(make_fetch_client(handler))

        by_ticker = await sec.fetch("AAPL")
        by_cik = await sec.fetch_by_cik("AAPL", "320193")

        assert by_ticker.status == AdapterStatus.FAILED
        assert by_cik.status == AdapterStatus.FAILED
        assert sec._ticker_map is None
