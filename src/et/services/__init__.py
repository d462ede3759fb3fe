"""
Services package.

- EarningsAggregator: cache -> store -> primary -> secondary fallback
- HistoricalEpsReconciler: SEC EPS kept in sync with the store
- RefreshDispatcher: GitHub Actions workflow trigger
- RequestRateGuard: per-client, per-path ingress quota
"""

from et.services.aggregator import EarningsAggregator
from et.services.container import Services, build_services
from et.services.dispatcher import RefreshDispatcher
from et.services.rate_guard import RateLimitStatus, RequestRateGuard
from et.services.reconciler import HistoricalEpsReconciler, dedup_keep_first

__all__ = [
    "EarningsAggregator",
    "HistoricalEpsReconciler",
    "RateLimitStatus",
    "RefreshDispatcher",
    "RequestRateGuard",
    "Services",
    "build_services",
    "dedup_keep_first",
]
