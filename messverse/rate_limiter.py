"""
Fixed-window request counting for the mutating routes.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0
    remaining: int = 0


class FixedWindowRateLimiter:
    """
    Counts hits per key inside a fixed window that starts at the key's first hit.

    Expired buckets are swept once more than ``max_buckets`` keys are tracked.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        *,
        max_buckets: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.max_buckets = max_buckets
        self._clock = clock
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    @property
    def bucket_count(self) -> int:
        return len(self._hits)

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            count, reset = self._hits.get(key, (0, now + self.window_seconds))
            if now >= reset:
                count = 0
                reset = now + self.window_seconds
            count += 1
            self._hits[key] = (count, reset)
            if len(self._hits) > self.max_buckets:
                self._sweep(now)
        if count > self.limit:
            retry_after = min(self.window_seconds, max(1, math.ceil(reset - now)))
            return RateLimitDecision(allowed=False, retry_after=retry_after)
        return RateLimitDecision(allowed=True, remaining=self.limit - count)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        expired = [key for key, (_, reset) in self._hits.items() if now >= reset]
        for key in expired:
            del self._hits[key]
        if expired:
            logger.debug("Swept %d expired rate limit buckets", len(expired))
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
