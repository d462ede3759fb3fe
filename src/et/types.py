"""
Core types for the earnings tracker.

This module defines the data structures shared across the pipeline:
- Enums for event timing, sources, adapter outcomes and refresh job states
- Frozen dataclasses for immutable records (CanonicalEarningsEvent,
  HistoricalEpsEntry, HistoricalEpsRecord, Company)
- Mutable dataclasses for process-wide state (CacheEntry, RateLimitCounter)
- Result wrappers (AdapterResult, EarningsLookup, RefreshJob)
- Helper functions for ID generation and timestamps
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from uuid6 import uuid7

T = TypeVar("T")


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "co", "req")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Get the current UTC calendar date."""
    return utc_now().date()


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class EarningsTiming(str, Enum):
    """When the report lands relative to the trading session."""

    BEFORE = "before"
    AFTER = "after"
    DURING = "during"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, raw: Any) -> EarningsTiming:
        """Map an upstream time-of-day label onto a timing value."""
        if not raw or not isinstance(raw, str):
            return cls.UNKNOWN
        value = raw.strip().lower().replace("_", "-")
        if value in ("bmo", "before", "pre-market", "premarket", "before-market-open"):
            return cls.BEFORE
        if value in ("amc", "after", "post-market", "postmarket", "after-market-close"):
            return cls.AFTER
        if value in ("dmh", "during", "during-market-hours", "intraday"):
            return cls.DURING
        return cls.UNKNOWN


class EarningsSource(str, Enum):
    """Where a canonical event came from."""

    PERSISTED = "persisted"
    CACHE = "cache"
    SEC = "sec"
    PRIMARY = "primary"
    SECONDARY = "secondary"


class AdapterStatus(str, Enum):
    """Outcome of one adapter attempt."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


class RefreshJobState(str, Enum):
    """Terminal states of a dispatched refresh."""

    DISPATCHED = "dispatched"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class CanonicalEarningsEvent:
    """One company's earnings disclosure, normalized across sources.

    Unique per (symbol, earnings_date) in the persisted store.
    """

    symbol: str
    company_name: str
    earnings_date: date
    timing: EarningsTiming = EarningsTiming.UNKNOWN
    eps_estimate: float | None = None
    eps_actual: float | None = None
    surprise_percent: float | None = None
    fiscal_period: str = ""
    fiscal_year: int | None = None
    source: EarningsSource = EarningsSource.PRIMARY

    def with_source(self, source: EarningsSource) -> CanonicalEarningsEvent:
        """Return a copy tagged with a different source."""
        return replace(self, source=source)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "company_name": self.company_name,
            "earnings_date": self.earnings_date.isoformat(),
            "timing": self.timing.value,
            "eps_estimate": self.eps_estimate,
            "eps_actual": self.eps_actual,
            "surprise_percent": self.surprise_percent,
            "fiscal_period": self.fiscal_period,
            "fiscal_year": self.fiscal_year,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CanonicalEarningsEvent:
        return cls(
            symbol=data["symbol"],
            company_name=data.get("company_name") or data["symbol"],
            earnings_date=_parse_date(data["earnings_date"]),
            timing=EarningsTiming(data.get("timing") or EarningsTiming.UNKNOWN.value),
            eps_estimate=data.get("eps_estimate"),
            eps_actual=data.get("eps_actual"),
            surprise_percent=data.get("surprise_percent"),
            fiscal_period=data.get("fiscal_period") or "",
            fiscal_year=data.get("fiscal_year"),
            source=EarningsSource(data.get("source") or EarningsSource.PERSISTED.value),
        )


@dataclass(frozen=True)
class HistoricalEpsEntry:
    """Quarterly EPS fact pulled from SEC XBRL, not yet bound to a company."""

    fiscal_period: str  # e.g. "Q1 2024"
    eps_actual: float
    filing_date: date
    period_end: date | None = None


@dataclass(frozen=True)
class HistoricalEpsRecord:
    """Persisted EPS row. Unique per (company_id, fiscal_period)."""

    company_id: str
    fiscal_period: str
    eps_actual: float
    filing_date: date

    @classmethod
    def from_entry(cls, company_id: str, entry: HistoricalEpsEntry) -> HistoricalEpsRecord:
        return cls(
            company_id=company_id,
            fiscal_period=entry.fiscal_period,
            eps_actual=entry.eps_actual,
            filing_date=entry.filing_date,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "company_id": self.company_id,
            "fiscal_period": self.fiscal_period,
            "eps_actual": self.eps_actual,
            "filing_date": self.filing_date.isoformat(),
        }


@dataclass(frozen=True)
class Company:
    """A tracked company. Unique per ticker."""

    id: str
    ticker: str
    company_name: str
    cik: str | None = None
    created_at: datetime | None = None


@dataclass
class CacheEntry:
    """Cached value with absolute expiry (epoch seconds)."""

    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class RateLimitCounter:
    """Request count for one client key inside the current window."""

    client_key: str
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class AdapterResult(Generic[T]):
    """Tagged outcome of a single upstream adapter call.

    ``ok`` carries at least one item, ``empty`` means the upstream answered
    with nothing, ``failed`` means the upstream could not be used.
    """

    source: EarningsSource
    status: AdapterStatus
    items: tuple[T, ...] = ()
    error: str | None = None

    @classmethod
    def ok(cls, source: EarningsSource, items: list[T]) -> AdapterResult[T]:
        if not items:
            return cls(source=source, status=AdapterStatus.EMPTY)
        return cls(source=source, status=AdapterStatus.OK, items=tuple(items))

    @classmethod
    def empty(cls, source: EarningsSource) -> AdapterResult[T]:
        return cls(source=source, status=AdapterStatus.EMPTY)

    @classmethod
    def failed(cls, source: EarningsSource, error: str) -> AdapterResult[T]:
        return cls(source=source, status=AdapterStatus.FAILED, error=error)

    @property
    def has_data(self) -> bool:
        return self.status == AdapterStatus.OK


@dataclass(frozen=True)
class EarningsLookup:
    """Result of resolving upcoming earnings for one symbol.

    ``source`` is None when no source had anything for the symbol.
    ``failed_sources`` lists the adapters that could not be used, so an empty
    answer can be told apart from an unreachable upstream.
    """

    symbol: str
    events: tuple[CanonicalEarningsEvent, ...] = ()
    source: EarningsSource | None = None
    failed_sources: tuple[EarningsSource, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.source is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "earnings": [e.to_dict() for e in self.events],
            "source": self.source.value if self.source else None,
            "failed_sources": [s.value for s in self.failed_sources],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EarningsLookup:
        source = data.get("source")
        return cls(
            symbol=data["symbol"],
            events=tuple(CanonicalEarningsEvent.from_dict(e) for e in data.get("earnings", [])),
            source=EarningsSource(source) if source else None,
            failed_sources=tuple(EarningsSource(s) for s in data.get("failed_sources", [])),
        )


@dataclass(frozen=True)
class RefreshJob:
    """A fire-and-forget refresh request. Never persisted."""

    ticker: str
    triggered_by: str
    state: RefreshJobState
    requested_at: datetime = field(default_factory=utc_now)
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "triggered_by": self.triggered_by,
            "state": self.state.value,
            "requested_at": self.requested_at.isoformat(),
            "detail": self.detail,
        }
