"""
Tests for the Polygon and Alpha Vantage adapters.
"""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from et.data.alpha_vantage_client import AlphaVantageClient, parse_earnings_calendar
from et.data.polygon_client import PolygonClient, parse_polygon_earning
from et.types import AdapterStatus, EarningsSource, EarningsTiming

CALENDAR_CSV = (
    "symbol,name,reportDate,fiscalDateEnding,estimate,currency,timeOfTheDay\r\n"
    "AAPL,Apple Inc,2025-10-30,2025-09-30,1.77,USD,post-market\r\n"
    "AAPL,Apple Inc,2025-07-31,2025-06-30,,USD,\r\n"
)


class TestPolygonParsing:
    """Test Polygon field mapping."""

    def test_benzinga_fields(self) -> None:
        event = parse_polygon_earning(
            "AAPL",
            {
                "date": "2025-10-30",
                "time": "16:30:00",
                "estimated_eps": 1.77,
                "actual_eps": None,
                "eps_surprise_percent": None,
                "fiscal_period": "Q4",
                "fiscal_year": 2025,
                "company_name": "Apple Inc.",
            },
        )

        assert event is not None
        assert event.earnings_date == date(2025, 10, 30)
        assert event.timing == EarningsTiming.AFTER
        assert event.eps_estimate == 1.77
        assert event.fiscal_period == "Q4"
        assert event.fiscal_year == 2025
        assert event.source == EarningsSource.PRIMARY

    def test_alternate_fields(self) -> None:
        event = parse_polygon_earning(
            "MSFT",
            {
                "report_date": "2025-10-28",
                "time_of_day": "bmo",
                "eps_estimate": "3.10",
                "eps_actual": "3.30",
            },
        )

        assert event is not None
        assert event.timing == EarningsTiming.BEFORE
        assert event.eps_estimate == 3.10
        assert event.eps_actual == 3.30
        assert event.company_name == "MSFT"

    def test_missing_date_is_skipped(self) -> None:
        assert parse_polygon_earning("AAPL", {"estimated_eps": 1.0}) is None

    def test_non_string_time_is_unknown(self) -> None:
        event = parse_polygon_earning("AAPL", {"date": "2025-10-30", "time": 1630})

        assert event is not None
        assert event.timing == EarningsTiming.UNKNOWN


class TestPolygonClient:
    """Test the Polygon adapter over the wire."""

    @pytest.mark.asyncio
    async def test_fetch_ok(self, make_fetch_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"results": [{"date": "2025-10-30", "time": "amc", "company_name": "Apple"}]},
            )

        client = PolygonClient(make_fetch_client(handler), api_key="k")
        result = await client.fetch("aapl")

        assert result.status == AdapterStatus.OK
        assert result.items[0].symbol == "AAPL"
        assert seen[0].url.path == "/benzinga/v1/earnings"
        assert seen[0].url.params["ticker"] == "AAPL"
        assert seen[0].url.params["apiKey"] == "k"

    @pytest.mark.asyncio
    async def test_missing_key_fails_without_request(self, make_fetch_client) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json={"results": []})

        client = PolygonClient(make_fetch_client(handler), api_key=None)
        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.FAILED
        assert "not configured" in (result.error or "")
        assert calls == 0

    @pytest.mark.asyncio
    async def test_http_error_is_failure(self, make_fetch_client) -> None:
        client = PolygonClient(
            make_fetch_client(lambda r: httpx.Response(429)), api_key="k"
        )

        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.FAILED

    @pytest.mark.asyncio
    async def test_no_results_is_empty(self, make_fetch_client) -> None:
        client = PolygonClient(
            make_fetch_client(lambda r: httpx.Response(200, json={"results": []})),
            api_key="k",
        )

        result = await client.fetch("ZZZZ")

        assert result.status == AdapterStatus.EMPTY

    @pytest.mark.asyncio
    async def test_non_object_body_is_failure(self, make_fetch_client) -> None:
        client = PolygonClient(
            make_fetch_client(lambda r: httpx.Response(200, json=[])),
            api_key="k",
        )

        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.FAILED
        assert "parse error" in (result.error or "")

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self, make_fetch_client) -> None:
        body = {
            "results": [
                {"date": "not-a-date"},
                {"date": "2025-10-30", "estimated_eps": "n/a"},
                {"date": "2026-01-29", "time": 1630, "estimated_eps": 2.1},
            ]
        }
        client = PolygonClient(
            make_fetch_client(lambda r: httpx.Response(200, json=body)),
            api_key="k",
        )

        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.OK
        assert [e.earnings_date for e in result.items] == [date(2026, 1, 29)]
        assert result.items[0].timing == EarningsTiming.UNKNOWN


class TestAlphaVantage:
    """Test the Alpha Vantage adapter."""

    def test_parse_calendar(self) -> None:
        events = parse_earnings_calendar("AAPL", CALENDAR_CSV)

        assert [e.earnings_date for e in events] == [date(2025, 7, 31), date(2025, 10, 30)]
        latest = events[1]
        assert latest.timing == EarningsTiming.AFTER
        assert latest.eps_estimate == 1.77
        assert latest.company_name == "Apple Inc"
        assert latest.fiscal_year == 2025
        assert events[0].eps_estimate is None
        assert events[0].timing == EarningsTiming.UNKNOWN

    def test_parse_header_only(self) -> None:
        header = "symbol,name,reportDate,fiscalDateEnding,estimate,currency,timeOfTheDay\r\n"
        assert parse_earnings_calendar("ZZZZ", header) == []

    def test_malformed_rows_are_skipped(self) -> None:
        text = (
            "symbol,name,reportDate,fiscalDateEnding,estimate,currency,timeOfTheDay\r\n"
            "AAPL,Apple Inc,2025-13-45,2025-09-30,1.77,USD,\r\n"
            "AAPL,Apple Inc,2025-10-30,2025-09-30,n/a,USD,\r\n"
            "AAPL,Apple Inc,2026-01-29,2025-12-31,2.10,USD,pre-market\r\n"
        )

        events = parse_earnings_calendar("AAPL", text)

        assert [e.earnings_date for e in events] == [date(2026, 1, 29)]
        assert events[0].timing == EarningsTiming.BEFORE

    @pytest.mark.asyncio
    async def test_fetch_ok(self, make_fetch_client) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=CALENDAR_CSV)

        client = AlphaVantageClient(make_fetch_client(handler), api_key="av")
        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.OK
        assert all(e.source == EarningsSource.SECONDARY for e in result.items)
        assert seen[0].url.params["function"] == "EARNINGS_CALENDAR"
        assert seen[0].url.params["horizon"] == "3month"
        assert seen[0].url.params["apikey"] == "av"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["Note", "Information", "Error Message"])
    async def test_json_notice_is_failure(self, make_fetch_client, key: str) -> None:
        client = AlphaVantageClient(
            make_fetch_client(lambda r: httpx.Response(200, json={key: "limit reached"})),
            api_key="av",
        )

        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.FAILED
        assert "limit reached" in (result.error or "")

    @pytest.mark.asyncio
    async def test_missing_key_is_failure(self, make_fetch_client) -> None:
        client = AlphaVantageClient(
            make_fetch_client(lambda r: httpx.Response(200, text=CALENDAR_CSV)),
            api_key="",
        )

        result = await client.fetch("AAPL")

        assert result.status == AdapterStatus.FAILED
