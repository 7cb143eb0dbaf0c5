"""Bounded retry with pluggable backoff for embedding provider calls.

:class:`RetryPolicy` wraps an async callable and re-invokes it when it
raises a retryable :class:`~ragdocs.utils.errors.ProviderError`.  The wait
between attempts comes from a backoff function of the attempt number and
is awaited through an injectable ``sleep`` coroutine, so tests can swap
in a recorder and run without real delays::

    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=fake_sleep)
    result = await policy.run(lambda: provider.embed(batch))

Only the awaiting task is suspended during backoff; other pipelines keep
running on the event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from ragdocs.utils.errors import ProviderError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")

BackoffFn = Callable[[int], float]
SleepFn = Callable[[float], Awaitable[None]]


def linear_backoff(base_delay: float) -> BackoffFn:
    """Return a backoff function yielding ``base_delay * attempt`` seconds."""

    def _delay(attempt: int) -> float:
        return base_delay * attempt

    return _delay


def exponential_backoff(base_delay: float, cap: float = 30.0) -> BackoffFn:
    """Return a backoff function yielding ``base_delay * 2**(attempt-1)``, capped."""

    def _delay(attempt: int) -> float:
        return min(cap, base_delay * (2 ** (attempt - 1)))

    return _delay


BACKOFF_KINDS: dict[str, Callable[[float], BackoffFn]] = {
    "linear": linear_backoff,
    "exponential": exponential_backoff,
}


def backoff_for(kind: str, base_delay: float) -> BackoffFn:
    """Build the named backoff schedule (``"linear"`` or ``"exponential"``)."""
    try:
        factory = BACKOFF_KINDS[kind]
    except KeyError:
        raise ValidationError(
            f"Unknown backoff {kind!r}; expected one of {sorted(BACKOFF_KINDS)}"
        ) from None
    return factory(base_delay)


class RetryPolicy:
    """Retry an async operation a bounded number of times.

    Parameters
    ----------
    max_attempts:
        Total number of attempts, including the first (must be >= 1).
    base_delay:
        Seconds fed to the backoff schedule.
    backoff:
        A schedule name from :data:`BACKOFF_KINDS`, or a function mapping
        the 1-based number of the attempt that just failed to the delay
        before the next one (*base_delay* is then unused).
    sleep:
        Coroutine used to wait between attempts.  Defaults to
        :func:`asyncio.sleep`.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff: str | BackoffFn = "linear",
        sleep: SleepFn | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValidationError(f"max_attempts must be >= 1, got {max_attempts}")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._kind = backoff if isinstance(backoff, str) else None
        self._backoff = backoff_for(backoff, base_delay) if isinstance(backoff, str) else backoff
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def replace(
        self, max_attempts: int | None = None, base_delay: float | None = None
    ) -> RetryPolicy:
        """Return a copy with a different attempt budget and/or base delay.

        A new *base_delay* keeps the policy's named schedule; a policy built
        from a custom backoff function switches to linear.
        """
        if base_delay is None:
            backoff: str | BackoffFn = self._kind or self._backoff
            base_delay = self._base_delay
        else:
            backoff = self._kind or "linear"
        return RetryPolicy(
            max_attempts=max_attempts if max_attempts is not None else self._max_attempts,
            base_delay=base_delay,
            backoff=backoff,
            sleep=self._sleep,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "provider_call",
    ) -> T:
        """Await *operation* until it succeeds or the attempts run out.

        Non-retryable :class:`ProviderError`s and any other exception
        propagate immediately.  When every attempt fails with a retryable
        error, the last error is re-raised.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except ProviderError as exc:
                if not exc.retryable:
                    raise
                if attempt >= self._max_attempts:
                    logger.error(
                        "retries_exhausted",
                        operation=operation_name,
                        attempts=self._max_attempts,
                        error=str(exc),
                    )
                    raise
                delay = self._backoff(attempt)
                logger.warning(
                    "retrying_after_provider_error",
                    operation=operation_name,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    delay_seconds=delay,
                    error=str(exc),
                )
                await self._sleep(delay)
            attempt += 1
