"""
Ingress request-rate guard.

Fixed window per key, where the key is client identity plus route path.
Counters live in process memory. Old windows are swept lazily: roughly one
request in a hundred triggers a pass that drops windows that expired more
than one full window ago.
"""

from __future__ import annotations

import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable

from et.exceptions import RateLimitError
from et.logging import get_logger
from et.types import RateLimitCounter

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    """Quota left for a key after an admitted request."""

    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }


class RequestRateGuard:
    """Admits at most ``max_requests`` per key per window."""

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 60,
        cleanup_probability: float = 0.01,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.cleanup_probability = cleanup_probability
        self._clock = clock
        self._rng = rng
        self._counters: dict[str, RateLimitCounter] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(client: str, path: str) -> str:
        return f"{client}:{path}"

    def check(self, client: str, path: str) -> RateLimitStatus:
        """Count one request for (client, path).

        Returns:
            Remaining quota when the request is admitted.

        Raises:
            RateLimitError: If the key is over its quota for the current window.
        """
        key = self.key_for(client, path)
        now = self._clock()

        if self._rng() < self.cleanup_probability:
            self.cleanup(now)

        with self._lock:
            counter = self._counters.get(key)
            if counter is None or now > counter.window_reset_at:
                counter = RateLimitCounter(
                    client_key=key,
                    count=0,
                    window_reset_at=now + self.window_seconds,
                )
                self._counters[key] = counter
            counter.count += 1
            count = counter.count
            reset_at = counter.window_reset_at

        if count > self.max_requests:
            retry_after = max(1, math.ceil(reset_at - now))
            logger.warning("Rate limit exceeded", key=key, retry_after=retry_after)
            raise RateLimitError(
                "Too many requests",
                retry_after=retry_after,
                limit=self.max_requests,
                reset_at=reset_at,
                context={"key": key},
            )

        return RateLimitStatus(
            limit=self.max_requests,
            remaining=self.max_requests - count,
            reset_at=reset_at,
        )

    def cleanup(self, now: float | None = None) -> int:
        """Drop windows idle for more than one full window past their reset.

        Returns:
            Number of windows removed.
        """
        now = self._clock() if now is None else now
        with self._lock:
            stale = [
                key
                for key, counter in self._counters.items()
                if now > counter.window_reset_at + self.window_seconds
            ]
            for key in stale:
                del self._counters[key]
        if stale:
            logger.debug("Swept rate limit windows", removed=len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)
