import httpx
import pytest

from gmaps_mcp.core.retry import (
    RetryPolicy,
    default_retry_condition,
    retry_after_seconds,
    with_retry,
)
from gmaps_mcp.sdk.errors import GoogleMapsAPIError, RateLimitError, ValidationError


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _status_error(status: int, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://maps.googleapis.com/maps/api/geocode/json")
    response = httpx.Response(status, headers=headers or {}, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class Flaky:
    """Fails ``failures`` times with ``error`` and then returns ``result``."""

    def __init__(self, error: Exception, failures: int, result="ok"):
        self.error = error
        self.failures = failures
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_success_on_first_attempt_does_not_sleep():
    sleep = SleepRecorder()
    op = Flaky(RuntimeError("unused"), failures=0)
    assert await RetryPolicy(sleep=sleep).run(op) == "ok"
    assert op.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_recovers_after_transient_failures():
    sleep = SleepRecorder()
    op = Flaky(_status_error(503), failures=2)
    policy = RetryPolicy(max_attempts=3, base_delay_ms=100, jitter=False, sleep=sleep)
    assert await policy.run(op) == "ok"
    assert op.calls == 3
    assert sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]


@pytest.mark.asyncio
async def test_exhaustion_attempts_exactly_max_attempts_and_propagates_original():
    sleep = SleepRecorder()
    error = _status_error(500)
    op = Flaky(error, failures=100)
    policy = RetryPolicy(max_attempts=4, base_delay_ms=10, jitter=False, sleep=sleep)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await policy.run(op)

    assert excinfo.value is error
    assert op.calls == 4
    assert len(sleep.delays) == 3


@pytest.mark.asyncio
async def test_non_retryable_failure_propagates_immediately():
    sleep = SleepRecorder()
    op = Flaky(_status_error(400), failures=100)
    with pytest.raises(httpx.HTTPStatusError):
        await RetryPolicy(max_attempts=5, sleep=sleep).run(op)
    assert op.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retry_after_header_is_honored():
    sleep = SleepRecorder()
    op = Flaky(_status_error(429, {"Retry-After": "5"}), failures=1)
    policy = RetryPolicy(base_delay_ms=100, jitter=True, sleep=sleep)
    await policy.run(op)
    assert sleep.delays[0] >= 5.0


@pytest.mark.asyncio
async def test_retry_after_on_domain_error_is_honored():
    sleep = SleepRecorder()
    op = Flaky(RateLimitError("slow down", retry_after=5, status=429), failures=1)
    await RetryPolicy(base_delay_ms=1, sleep=sleep).run(op)
    assert sleep.delays[0] >= 5.0


@pytest.mark.asyncio
async def test_custom_retry_condition():
    sleep = SleepRecorder()
    op = Flaky(ValueError("boom"), failures=1)
    policy = RetryPolicy(retry_condition=lambda exc: isinstance(exc, ValueError), sleep=sleep)
    assert await policy.run(op) == "ok"
    assert op.calls == 2


@pytest.mark.asyncio
async def test_with_retry_builds_one_off_policy():
    sleep = SleepRecorder()
    op = Flaky(httpx.ConnectTimeout("timed out"), failures=1)
    assert await with_retry(op, jitter=False, base_delay_ms=50, sleep=sleep) == "ok"
    assert sleep.delays == [pytest.approx(0.05)]


def test_delay_is_capped_at_max_delay():
    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=3000, jitter=False)
    assert [policy.compute_delay_ms(n) for n in (1, 2, 3, 4, 10)] == [1000, 2000, 3000, 3000, 3000]


def test_jitter_scales_into_half_to_full_range():
    policy = RetryPolicy(base_delay_ms=1000, max_delay_ms=10000, jitter=True)
    for _ in range(200):
        delay = policy.compute_delay_ms(2)
        assert 1000 <= delay <= 2000


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


@pytest.mark.parametrize("error,expected", [
    (_status_error(500), True),
    (_status_error(503), True),
    (_status_error(429), True),
    (_status_error(404), False),
    (httpx.ConnectError("refused"), True),
    (httpx.ReadTimeout("slow"), True),
    (GoogleMapsAPIError("down", status=502), True),
    (GoogleMapsAPIError("bad", status=400), False),
    (GoogleMapsAPIError("net", network_error="ECONNREFUSED"), True),
    (GoogleMapsAPIError("net", network_error="ECONNRESET"), False),
    (ValidationError("nope"), False),
    (RuntimeError("?"), False),
])
def test_default_retry_condition(error, expected):
    assert default_retry_condition(error) is expected


def test_retry_after_seconds_parsing():
    assert retry_after_seconds(_status_error(429, {"Retry-After": "7"})) == 7.0
    assert retry_after_seconds(_status_error(429, {"Retry-After": "soon"})) is None
    assert retry_after_seconds(_status_error(503)) is None
    assert retry_after_seconds(RateLimitError("x", retry_after=2.5)) == 2.5
