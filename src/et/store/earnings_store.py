"""
Persisted store for companies, upcoming earnings and historical EPS.

SQLite via aiosqlite. Uniqueness constraints:
- companies: ticker
- earnings_events: (symbol, earnings_date)
- historical_eps: (company_id, fiscal_period)

Upserts use native ``ON CONFLICT ... DO UPDATE`` so a conflicting row has all
of its non-key fields overwritten, atomically per row.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Iterable

import aiosqlite

from et.logging import get_logger
from et.types import (
    CanonicalEarningsEvent,
    Company,
    EarningsSource,
    EarningsTiming,
    HistoricalEpsRecord,
    generate_id,
    utc_now,
)

logger = get_logger(__name__)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS companies (
        id TEXT PRIMARY KEY,
        ticker TEXT NOT NULL UNIQUE,
        company_name TEXT NOT NULL,
        cik TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS earnings_events (
        symbol TEXT NOT NULL,
        company_name TEXT NOT NULL,
        earnings_date TEXT NOT NULL,
        timing TEXT NOT NULL,
        eps_estimate REAL,
        eps_actual REAL,
        surprise_percent REAL,
        fiscal_period TEXT NOT NULL DEFAULT '',
        fiscal_year INTEGER,
        source TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (symbol, earnings_date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS historical_eps (
        company_id TEXT NOT NULL REFERENCES companies(id),
        fiscal_period TEXT NOT NULL,
        eps_actual REAL NOT NULL,
        filing_date TEXT NOT NULL,
        UNIQUE (company_id, fiscal_period)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_symbol_date ON earnings_events(symbol, earnings_date)",
    "CREATE INDEX IF NOT EXISTS idx_eps_company_filed ON historical_eps(company_id, filing_date)",
)


class EarningsStore:
    """SQLite-backed store shared by the aggregator and the EPS reconciler."""

    def __init__(self, db_path: str | Path) -> None:
        """Initialize earnings store.

        Args:
            db_path: Path to SQLite database file.
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the connection and create tables if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row

        for statement in SCHEMA:
            await self._db.execute(statement)
        await self._db.commit()

        logger.info("Earnings store initialized", db_path=str(self.db_path))

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("EarningsStore not initialized. Call init() first.")
        return self._db

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        db = self._conn()
        async with db.execute("SELECT 1") as cursor:
            row = await cursor.fetchone()
        return row is not None and row[0] == 1

    # ------------------------------------------------------------------
    # Earnings events
    # ------------------------------------------------------------------

    async def upsert_earnings_event(self, event: CanonicalEarningsEvent) -> None:
        """Insert or replace the event keyed on (symbol, earnings_date)."""
        db = self._conn()
        await db.execute(
            """
            INSERT INTO earnings_events (
                symbol, company_name, earnings_date, timing, eps_estimate,
                eps_actual, surprise_percent, fiscal_period, fiscal_year,
                source, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (symbol, earnings_date) DO UPDATE SET
                company_name = excluded.company_name,
                timing = excluded.timing,
                eps_estimate = excluded.eps_estimate,
                eps_actual = excluded.eps_actual,
                surprise_percent = excluded.surprise_percent,
                fiscal_period = excluded.fiscal_period,
                fiscal_year = excluded.fiscal_year,
                source = excluded.source,
                updated_at = excluded.updated_at
            """,
            (
                event.symbol.upper(),
                event.company_name,
                event.earnings_date.isoformat(),
                event.timing.value,
                event.eps_estimate,
                event.eps_actual,
                event.surprise_percent,
                event.fiscal_period,
                event.fiscal_year,
                event.source.value,
                utc_now().isoformat(),
            ),
        )
        await db.commit()

    async def get_upcoming_events(
        self,
        symbol: str,
        today: date,
        limit: int = 4,
    ) -> list[CanonicalEarningsEvent]:
        """Get events dated today or later, soonest first."""
        db = self._conn()
        async with db.execute(
            """
            SELECT * FROM earnings_events
            WHERE symbol = ? AND earnings_date >= ?
            ORDER BY earnings_date ASC
            LIMIT ?
            """,
            (symbol.upper(), today.isoformat(), limit),
        ) as cursor:
            rows = await cursor.fetchall()

        return [self._row_to_event(row) for row in rows]

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> CanonicalEarningsEvent:
        return CanonicalEarningsEvent(
            symbol=row["symbol"],
            company_name=row["company_name"],
            earnings_date=date.fromisoformat(row["earnings_date"]),
            timing=EarningsTiming(row["timing"]),
            eps_estimate=row["eps_estimate"],
            eps_actual=row["eps_actual"],
            surprise_percent=row["surprise_percent"],
            fiscal_period=row["fiscal_period"],
            fiscal_year=row["fiscal_year"],
            source=EarningsSource(row["source"]),
        )

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    async def get_company(self, ticker: str) -> Company | None:
        """Look up a company by ticker."""
        db = self._conn()
        async with db.execute(
            "SELECT * FROM companies WHERE ticker = ?", (ticker.upper(),)
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None
        return Company(
            id=row["id"],
            ticker=row["ticker"],
            company_name=row["company_name"],
            cik=row["cik"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def create_company(
        self,
        ticker: str,
        company_name: str | None = None,
        cik: str | None = None,
    ) -> Company:
        """Insert a new company row.

        Raises:
            aiosqlite.IntegrityError: If the ticker already exists.
        """
        db = self._conn()
        company = Company(
            id=generate_id("co"),
            ticker=ticker.upper(),
            company_name=company_name or ticker.upper(),
            cik=cik,
            created_at=utc_now(),
        )
        await db.execute(
            """
            INSERT INTO companies (id, ticker, company_name, cik, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                company.id,
                company.ticker,
                company.company_name,
                company.cik,
                company.created_at.isoformat(),
            ),
        )
        await db.commit()
        logger.info("Created company", ticker=company.ticker, company_id=company.id)
        return company

    async def get_or_create_company(
        self,
        ticker: str,
        company_name: str | None = None,
    ) -> Company:
        """Return the company for ``ticker``, creating it when absent."""
        db = self._conn()
        await db.execute(
            """
            INSERT INTO companies (id, ticker, company_name, cik, created_at)
            VALUES (?, ?, ?, NULL, ?)
            ON CONFLICT (ticker) DO NOTHING
            """,
            (
                generate_id("co"),
                ticker.upper(),
                company_name or ticker.upper(),
                utc_now().isoformat(),
            ),
        )
        await db.commit()

        company = await self.get_company(ticker)
        if company is None:
            raise RuntimeError(f"Company row for {ticker.upper()} vanished after insert")
        return company

    async def set_company_cik(self, company_id: str, cik: str) -> None:
        """Remember the resolved CIK on the company row."""
        db = self._conn()
        await db.execute("UPDATE companies SET cik = ? WHERE id = ?", (cik, company_id))
        await db.commit()

    # ------------------------------------------------------------------
    # Historical EPS
    # ------------------------------------------------------------------

    async def list_historical_eps(self, company_id: str) -> list[HistoricalEpsRecord]:
        """Get all EPS rows for a company, newest filing first."""
        db = self._conn()
        async with db.execute(
            """
            SELECT * FROM historical_eps
            WHERE company_id = ?
            ORDER BY filing_date DESC, fiscal_period DESC
            """,
            (company_id,),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            HistoricalEpsRecord(
                company_id=row["company_id"],
                fiscal_period=row["fiscal_period"],
                eps_actual=row["eps_actual"],
                filing_date=date.fromisoformat(row["filing_date"]),
            )
            for row in rows
        ]

    async def upsert_historical_eps(self, records: Iterable[HistoricalEpsRecord]) -> int:
        """Upsert each row on (company_id, fiscal_period).

        Each row is committed on its own.

        Returns:
            Number of rows written.
        """
        db = self._conn()
        count = 0
        for record in records:
            await db.execute(
                """
                INSERT INTO historical_eps (company_id, fiscal_period, eps_actual, filing_date)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (company_id, fiscal_period) DO UPDATE SET
                    eps_actual = excluded.eps_actual,
                    filing_date = excluded.filing_date
                """,
                (
                    record.company_id,
                    record.fiscal_period,
                    record.eps_actual,
                    record.filing_date.isoformat(),
                ),
            )
            await db.commit()
            count += 1
        return count

    async def delete_historical_eps(self, company_id: str) -> int:
        """Delete every EPS row for a company.

        Returns:
            Number of rows deleted.
        """
        db = self._conn()
        cursor = await db.execute(
            "DELETE FROM historical_eps WHERE company_id = ?", (company_id,)
        )
        await db.commit()
        return cursor.rowcount

    async def replace_historical_eps(
        self,
        company_id: str,
        records: Iterable[HistoricalEpsRecord],
    ) -> int:
        """Replace a company's EPS rows with ``records``.

        Returns:
            Number of rows inserted.
        """
        deleted = await self.delete_historical_eps(company_id)
        inserted = await self.upsert_historical_eps(records)
        logger.info(
            "Replaced historical EPS",
            company_id=company_id,
            deleted=deleted,
            inserted=inserted,
        )
        return inserted
