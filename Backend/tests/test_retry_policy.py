"""
Retry policy tests.

INVARIANTS:
1. A persistently transient failure is attempted exactly max_retries + 1 times
2. A non-retryable failure is attempted exactly once and re-raised unchanged
3. Delays double from base_delay
4. Exhaustion names the attempt count and chains the last error
"""
import pytest

from dbcoach.core.exceptions import ErrorKind, GenerationError, RetryExhaustedError
from dbcoach.orchestration.retry_policy import RetryPolicy
from tests.conftest import RecordingSleep
from tests.utils.call_counter import CallCounter


def failing(counter: CallCounter, error: Exception, succeed_on: int = 0):
    async def operation():
        counter.inc("op")
        if succeed_on and counter.count("op") >= succeed_on:
            return "ok"
        raise error
    return operation


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
async def test_retry_bound_is_max_retries_plus_one(max_retries):
    counter = CallCounter()
    policy = RetryPolicy(max_retries=max_retries, base_delay=0.01, sleep=RecordingSleep())

    with pytest.raises(RetryExhaustedError) as exc_info:
        await policy.execute(failing(counter, GenerationError("schema", "503", ErrorKind.UNAVAILABLE)))

    counter.assert_exact("op", max_retries + 1)
    assert exc_info.value.attempts == max_retries + 1
    assert f"after {max_retries + 1} attempts" in str(exc_info.value)


@pytest.mark.asyncio
async def test_exhaustion_chains_last_error():
    last = GenerationError("schema", "still down", ErrorKind.UNAVAILABLE)
    policy = RetryPolicy(max_retries=1, base_delay=0.0, sleep=RecordingSleep())

    with pytest.raises(RetryExhaustedError) as exc_info:
        await policy.execute(failing(CallCounter(), last))

    assert exc_info.value.last_error is last
    assert exc_info.value.__cause__ is last


@pytest.mark.asyncio
async def test_non_retryable_error_is_not_retried():
    counter = CallCounter()
    error = GenerationError("schema", "bad key", ErrorKind.AUTH)
    sleep = RecordingSleep()
    policy = RetryPolicy(max_retries=3, base_delay=1.0, sleep=sleep)

    with pytest.raises(GenerationError) as exc_info:
        await policy.execute(failing(counter, error))

    assert exc_info.value is error
    counter.assert_exact("op", 1)
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_exponential_backoff_delays(recording_sleep):
    policy = RetryPolicy(max_retries=3, base_delay=1.0, sleep=recording_sleep)

    with pytest.raises(RetryExhaustedError):
        await policy.execute(failing(CallCounter(), Exception("429 rate limit")))

    # No sleep after the final attempt
    assert recording_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_success_after_transient_failures(recording_sleep):
    counter = CallCounter()
    retries = []
    policy = RetryPolicy(
        max_retries=3,
        base_delay=0.5,
        sleep=recording_sleep,
        on_retry=lambda attempt, error, delay: retries.append((attempt, delay)),
    )

    result = await policy.execute(failing(counter, Exception("503 unavailable"), succeed_on=3))

    assert result == "ok"
    counter.assert_exact("op", 3)
    assert retries == [(1, 0.5), (2, 1.0)]


def test_get_retry_delay():
    policy = RetryPolicy(max_retries=3, base_delay=2.0)
    assert [policy.get_retry_delay(a) for a in range(4)] == [2.0, 4.0, 8.0, 16.0]


def test_negative_budget_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)


def test_defaults_come_from_settings():
    from dbcoach.core.config import settings

    policy = RetryPolicy()
    assert policy.max_retries == settings.generation.max_retries
    assert policy.base_delay == settings.generation.base_delay
