"""
Earnings tracker core.

Aggregates upcoming earnings dates, estimates and historical EPS for
watchlisted tickers from SEC EDGAR, Polygon and Alpha Vantage.
"""

__version__ = "0.1.0"
