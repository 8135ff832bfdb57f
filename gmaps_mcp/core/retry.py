"""
Retry policy for upstream calls.

Exponential backoff with optional jitter, capped per attempt, and stretched
to honour a Retry-After hint when the upstream provides one. Only failures
accepted by ``retry_condition`` are retried; everything else propagates on
the first attempt.
"""

from __future__ import annotations

import asyncio
import random
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger("GMapsMCP.core.retry")

T = TypeVar("T")

RETRYABLE_NETWORK_ERRORS = ("ECONNREFUSED", "ENOTFOUND", "ETIMEDOUT")


def _status_of(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def default_retry_condition(error: BaseException) -> bool:
    """Retry 5xx, 429 and connection refused / host not found / timeout."""
    status = _status_of(error)
    if status is not None:
        return status >= 500 or status == 429
    if isinstance(error, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    return getattr(error, "network_error", None) in RETRYABLE_NETWORK_ERRORS


def retry_after_seconds(error: BaseException) -> Optional[float]:
    """Extract a Retry-After hint (seconds) from a failure, if any."""
    if isinstance(error, httpx.HTTPStatusError):
        raw: Any = error.response.headers.get("retry-after")
    else:
        raw = getattr(error, "retry_after", None)
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: float = 1000,
        max_delay_ms: float = 10000,
        jitter: bool = True,
        retry_condition: Callable[[BaseException], bool] = default_retry_condition,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter = jitter
        self.retry_condition = retry_condition
        self._sleep = sleep

    def compute_delay_ms(self, attempt: int, error: Optional[BaseException] = None) -> float:
        delay = min(self.base_delay_ms * (2 ** (attempt - 1)), self.max_delay_ms)
        if self.jitter:
            delay *= random.uniform(0.5, 1.0)
        if error is not None:
            retry_after = retry_after_seconds(error)
            if retry_after is not None:
                delay = max(delay, retry_after * 1000.0)
        return delay

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.retry_condition(exc):
                    raise
                delay_ms = self.compute_delay_ms(attempt, exc)
                logger.warning(
                    "Upstream call failed (attempt %d/%d); retrying in %.0fms: %s",
                    attempt,
                    self.max_attempts,
                    delay_ms,
                    exc,
                )
                await self._sleep(delay_ms / 1000.0)
                attempt += 1


async def with_retry(operation: Callable[[], Awaitable[T]], **options: Any) -> T:
    """Run ``operation`` under a one-off RetryPolicy built from ``options``."""
    return await RetryPolicy(**options).run(operation)
