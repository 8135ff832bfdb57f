"""
Token bucket rate limiting, one bucket per logical key (e.g. ``tool:<name>``).

Buckets refill continuously from elapsed wall time and never block: a check
either deducts tokens or raises RateLimitError carrying the estimated wait,
leaving the caller to decide whether to wait or surface the failure.
"""

from __future__ import annotations

import math
import time
import logging
from collections import OrderedDict
from typing import Callable, Dict

from gmaps_mcp.sdk.errors import RateLimitError

logger = logging.getLogger("GMapsMCP.core.rate_limiter")


class TokenBucket:
    """
    Continuous token bucket.

    ``tokens`` stays within ``[0, capacity]``. Refill and consume always run
    together on the event loop thread, so no locking is needed.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self._clock = clock
        self.tokens = self.capacity
        self.last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: float = 1) -> bool:
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def available_tokens(self) -> float:
        self._refill()
        return self.tokens

    def wait_time_ms(self, tokens: float = 1) -> float:
        self._refill()
        if self.tokens >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.refill_rate * 1000.0


class RateLimiter:
    """Lazily creates a TokenBucket per key; the key map is LRU-bounded."""

    def __init__(
        self,
        capacity: float = 100,
        refill_rate: float = 10,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.max_keys = max(1, int(max_keys))
        self._clock = clock
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()

    def _bucket(self, key: str) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(self.capacity, self.refill_rate, clock=self._clock)
            self._buckets[key] = bucket
            while len(self._buckets) > self.max_keys:
                self._buckets.popitem(last=False)
        else:
            self._buckets.move_to_end(key)
        return bucket

    def check_limit(self, key: str, tokens: float = 1) -> None:
        """Deduct ``tokens`` from the bucket for ``key`` or raise RateLimitError."""
        bucket = self._bucket(key)
        if bucket.consume(tokens):
            return
        wait_ms = int(math.ceil(bucket.wait_time_ms(tokens)))
        logger.info("Rate limit hit for %s; wait_ms=%d", key, wait_ms)
        raise RateLimitError(
            f"Rate limit exceeded. Wait {wait_ms}ms before retrying.",
            retry_after_ms=wait_ms,
        )

    def status(self, key: str) -> Dict[str, float]:
        bucket = self._buckets.get(key)
        if bucket is None:
            return {"available": float(self.capacity), "wait_time_ms": 0.0}
        return {
            "available": bucket.available_tokens(),
            "wait_time_ms": bucket.wait_time_ms(1),
        }

    def __len__(self) -> int:
        return len(self._buckets)
