"""
Base class for upstream adapters.

An adapter translates one external source into canonical records. Whatever
happens upstream, ``fetch`` returns an AdapterResult: transport and parse
errors are logged and reported as ``failed`` so the caller can move on to
the next source without handling exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, TypeVar

from et.exceptions import ETError
from et.logging import get_logger, log_context
from et.types import AdapterResult, EarningsSource

logger = get_logger(__name__)

T = TypeVar("T")


class UpstreamAdapter(ABC, Generic[T]):
    """Abstract base class for upstream adapters."""

    source: EarningsSource

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Name of the upstream service."""
        ...

    @abstractmethod
    async def _fetch_items(self, ticker: str) -> list[T]:
        """Fetch and normalize records for ``ticker``.

        May raise; ``fetch`` converts failures into a failed result.
        """
        ...

    async def fetch(self, ticker: str) -> AdapterResult[T]:
        """Fetch records for ``ticker`` without raising."""
        return await self._guarded(ticker.upper(), self._fetch_items)

    async def _guarded(
        self,
        symbol: str,
        loader: Callable[[str], Awaitable[list[T]]],
    ) -> AdapterResult[T]:
        with log_context(ticker=symbol, source=self.source_name):
            try:
                items = await loader(symbol)
            except ETError as e:
                logger.warning("Adapter returned no data", error=str(e))
                return AdapterResult.failed(self.source, str(e))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Adapter could not parse response", error=repr(e))
                return AdapterResult.failed(self.source, f"parse error: {e!r}")

            result = AdapterResult.ok(self.source, items)
            logger.info("Adapter finished", status=result.status.value, count=len(result.items))
            return result
