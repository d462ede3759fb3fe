"""
Data fetching package.

This package handles fetching data from external sources:
- Polygon.io - PRIMARY source for upcoming earnings
- Alpha Vantage - SECONDARY source for upcoming earnings
- SEC EDGAR XBRL company facts - historical quarterly EPS
"""

from et.data.alpha_vantage_client import AlphaVantageClient
from et.data.base import UpstreamAdapter
from et.data.fetch_client import RateLimitedFetchClient, create_fetch_client
from et.data.polygon_client import PolygonClient
from et.data.sec_client import SECClient

__all__ = [
    "AlphaVantageClient",
    "PolygonClient",
    "RateLimitedFetchClient",
    "SECClient",
    "UpstreamAdapter",
    "create_fetch_client",
]
