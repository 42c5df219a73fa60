from __future__ import annotations

import pytest

from config.settings import RetrySettings
from orchestrator.retry import RetryPolicies, RetryPolicy, run_with_retry
from utils.exceptions import ErrorKind, FatalStepError, RetryableStepError


class _Sleeps:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def test_policy_delay_is_exponential() -> None:
    policy = RetryPolicy(max_attempts=5, initial_backoff_ms=400, base=1.8)

    assert policy.delay_seconds(1) == pytest.approx(0.4)
    assert policy.delay_seconds(2) == pytest.approx(0.72)
    assert policy.delay_seconds(3) == pytest.approx(1.296)


def test_policies_from_settings() -> None:
    policies = RetryPolicies.from_settings(RetrySettings())

    assert policies.metadata == RetryPolicy(8, 400, 1.8)
    assert policies.link_metadata == RetryPolicy(5, 5000, 2.0)
    assert policies.link_enrichment == RetryPolicy(5, 1200, 1.6)


@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    sleeps = _Sleeps()
    calls = []

    async def flaky() -> str:
        calls.append(1)
        if len(calls) < 3:
            raise RetryableStepError(ErrorKind.TIMEOUT)
        return "ok"

    result = await run_with_retry(RetryPolicy(5, 1000, 2.0), flaky, sleep=sleeps)

    assert result == "ok"
    assert len(calls) == 3
    assert sleeps.delays == [pytest.approx(1.0), pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error() -> None:
    sleeps = _Sleeps()
    attempts = []

    async def always_fails() -> None:
        attempts.append(1)
        raise RetryableStepError(ErrorKind.RATE_LIMIT, f"attempt {len(attempts)}")

    with pytest.raises(RetryableStepError) as excinfo:
        await run_with_retry(RetryPolicy(3, 100, 2.0), always_fails, sleep=sleeps)

    assert excinfo.value.message == "attempt 3"
    assert len(sleeps.delays) == 2


@pytest.mark.asyncio
async def test_fatal_errors_are_not_retried() -> None:
    sleeps = _Sleeps()
    attempts = []

    async def fatal(reason: str) -> None:
        attempts.append(reason)
        raise FatalStepError(reason)

    with pytest.raises(FatalStepError):
        await run_with_retry(RetryPolicy(5, 100, 2.0), fatal, "broken", sleep=sleeps)

    assert attempts == ["broken"]
    assert sleeps.delays == []
