"""Persisted store (SQLite) for companies, earnings events and historical EPS."""

from et.store.earnings_store import EarningsStore

__all__ = ["EarningsStore"]
