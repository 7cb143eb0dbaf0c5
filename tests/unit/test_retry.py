"""Unit tests for RetryPolicy and the backoff functions."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from ragdocs.utils.errors import (
    InputTooLargeError,
    ProviderError,
    RateLimitedError,
    ValidationError,
)
from ragdocs.utils.retry import RetryPolicy, backoff_for, exponential_backoff, linear_backoff


def _flaky(failures: list[Exception], result: str = "ok") -> AsyncMock:
    """An async callable raising each of *failures* in turn, then returning *result*."""
    return AsyncMock(side_effect=[*failures, result])


class TestRetryPolicy:
    """Bounded retries on retryable provider errors."""

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self) -> None:
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep)
        operation = _flaky([RateLimitedError(), ProviderError("timeout")])

        assert await policy.run(operation) == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self) -> None:
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=5, sleep=sleep)
        operation = _flaky([InputTooLargeError()])

        with pytest.raises(InputTooLargeError):
            await policy.run(operation)
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_exceptions_propagate_without_retry(self) -> None:
        policy = RetryPolicy(max_attempts=3, sleep=AsyncMock())
        operation = _flaky([KeyError("boom")])

        with pytest.raises(KeyError):
            await policy.run(operation)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_last_error(self) -> None:
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, base_delay=0.5, sleep=sleep)
        last = ProviderError("third")
        operation = _flaky([ProviderError("first"), ProviderError("second"), last])

        with pytest.raises(ProviderError) as exc_info:
            await policy.run(operation)
        assert exc_info.value is last
        assert operation.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_replace_changes_budget(self) -> None:
        policy = RetryPolicy(max_attempts=3, sleep=AsyncMock()).replace(max_attempts=1)
        operation = _flaky([RateLimitedError()])

        with pytest.raises(RateLimitedError):
            await policy.run(operation)
        assert operation.await_count == 1
        assert policy.max_attempts == 1

    @pytest.mark.asyncio
    async def test_replace_base_delay_keeps_schedule(self) -> None:
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=4, base_delay=1.0, backoff="exponential", sleep=sleep)
        operation = _flaky([RateLimitedError(), RateLimitedError(), RateLimitedError()])

        assert await policy.replace(base_delay=0.25).run(operation) == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [0.25, 0.5, 1.0]

    @pytest.mark.asyncio
    async def test_custom_backoff_function(self) -> None:
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, backoff=lambda attempt: 7.0, sleep=sleep)

        assert await policy.run(_flaky([RateLimitedError(), RateLimitedError()])) == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [7.0, 7.0]

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)


class TestBackoff:
    """Delay schedules."""

    def test_linear(self) -> None:
        delay = linear_backoff(1.5)
        assert [delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 4.5]

    def test_exponential_is_capped(self) -> None:
        delay = exponential_backoff(1.0, cap=5.0)
        assert [delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    def test_named_schedules(self) -> None:
        assert backoff_for("linear", 2.0)(3) == 6.0
        assert backoff_for("exponential", 2.0)(3) == 8.0

    def test_unknown_schedule_rejected(self) -> None:
        with pytest.raises(ValidationError):
            backoff_for("fibonacci", 1.0)
        with pytest.raises(ValidationError):
            RetryPolicy(backoff="fibonacci")
