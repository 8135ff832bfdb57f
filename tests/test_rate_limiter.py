import pytest

from gmaps_mcp.core.rate_limiter import RateLimiter, TokenBucket
from gmaps_mcp.sdk.errors import RateLimitError


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_bucket_starts_full_and_drains():
    clock = FakeClock()
    bucket = TokenBucket(capacity=3, refill_rate=1, clock=clock)
    assert [bucket.consume() for _ in range(4)] == [True, True, True, False]
    assert bucket.wait_time_ms() == pytest.approx(1000.0)


def test_bucket_refill_is_capped_at_capacity():
    clock = FakeClock()
    bucket = TokenBucket(capacity=2, refill_rate=10, clock=clock)
    bucket.consume(2)
    clock.advance(60)
    assert bucket.available_tokens() == 2


def test_bucket_ignores_clock_going_backwards():
    clock = FakeClock(10.0)
    bucket = TokenBucket(capacity=1, refill_rate=1, clock=clock)
    bucket.consume()
    clock.now = 5.0
    assert bucket.available_tokens() == 0


@pytest.mark.parametrize("capacity,refill_rate", [(0, 1), (1, 0), (-1, 1)])
def test_bucket_rejects_non_positive_parameters(capacity, refill_rate):
    with pytest.raises(ValueError):
        TokenBucket(capacity=capacity, refill_rate=refill_rate)


def test_limiter_monotonicity():
    clock = FakeClock()
    capacity, refill_rate = 5, 2.0
    limiter = RateLimiter(capacity=capacity, refill_rate=refill_rate, clock=clock)

    for _ in range(capacity):
        limiter.check_limit("tool:geocode_search")

    with pytest.raises(RateLimitError) as excinfo:
        limiter.check_limit("tool:geocode_search")
    err = excinfo.value
    assert err.code == "RATE_LIMIT_ERROR"
    assert err.retry_after_ms > 0
    assert err.context["retryAfterMs"] == err.retry_after_ms
    assert f"Wait {err.retry_after_ms}ms" in err.message

    clock.advance(1.0 / refill_rate)
    limiter.check_limit("tool:geocode_search")


def test_limiter_keys_are_independent():
    clock = FakeClock()
    limiter = RateLimiter(capacity=1, refill_rate=1, clock=clock)
    limiter.check_limit("tool:a")
    limiter.check_limit("tool:b")
    with pytest.raises(RateLimitError):
        limiter.check_limit("tool:a")


def test_limiter_key_map_is_lru_bounded():
    clock = FakeClock()
    limiter = RateLimiter(capacity=1, refill_rate=1, max_keys=2, clock=clock)
    limiter.check_limit("a")
    limiter.check_limit("b")
    limiter.check_limit("c")
    assert len(limiter) == 2
    # "a" was evicted, so it comes back with a fresh bucket.
    limiter.check_limit("a")


def test_status_for_unknown_key_reports_full_capacity():
    limiter = RateLimiter(capacity=7, refill_rate=1)
    assert limiter.status("nobody") == {"available": 7.0, "wait_time_ms": 0.0}
