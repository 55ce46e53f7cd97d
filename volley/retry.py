"""
Retry policy with exponential backoff and tracking.

Retry decisions are made over explicit results: an operation returns
Success or Failure, and a predicate over the typed Failure decides whether
another attempt is worth making. Exceptions escaping an operation are
converted to Failure values first, so programming errors and expected
operational failures go through the same classification.

Integrates with retry tracking for per-scenario attempt history.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from volley.cancellation import CancellationToken, interruptible_sleep
from volley.config import RetryConfig
from volley.exceptions import RetryExhaustedError
from volley.models import Failure, FailureReason, Success
from volley.retries.tracking import get_retry_tracker

logger = logging.getLogger(__name__)

AttemptResult = Union[Success, Failure]
Operation = Callable[[], Awaitable[Any]]
RetryPredicate = Callable[[Failure], bool]


def default_retryable(failure: Failure) -> bool:
    """Retry everything except cancellation."""
    return failure.reason != FailureReason.CANCELLED


class RetryPolicy:
    """
    Attempts an operation up to max_retries + 1 times.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=3, initial_delay_ms=100))
        result = await policy.execute(attempt)
        if isinstance(result, Failure):
            ...
    """

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        self._config = config or RetryConfig()

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def max_attempts(self) -> int:
        return self._config.max_retries + 1

    def delay_ms(self, attempt: int) -> int:
        """Backoff before retrying after the given (0-indexed) attempt."""
        if not self._config.exponential:
            return self._config.initial_delay_ms
        return min(
            self._config.initial_delay_ms * (2**attempt), self._config.max_delay_ms
        )

    def schedule(self) -> List[int]:
        """All delays a fully failing operation would wait through."""
        return [self.delay_ms(attempt) for attempt in range(self._config.max_retries)]

    async def execute(
        self,
        operation: Operation,
        is_retryable: RetryPredicate = default_retryable,
        *,
        token: Optional[CancellationToken] = None,
    ) -> AttemptResult:
        """
        Run the operation with retries.

        Args:
            operation: Async callable returning Success or Failure. A plain
                return value counts as success; a raised exception as failure.
            is_retryable: Decides whether a failure deserves another attempt.
            token: Stops further attempts and interrupts backoff when cancelled.

        Returns:
            The first Success, or the Failure of the final attempt.
        """
        result, _ = await self._run(operation, is_retryable, token)
        return result

    async def _run(
        self,
        operation: Operation,
        is_retryable: RetryPredicate,
        token: Optional[CancellationToken],
    ) -> Tuple[AttemptResult, int]:
        tracker = get_retry_tracker()
        last_failure: Optional[Failure] = None

        for attempt in range(self.max_attempts):
            if token is not None and token.cancelled:
                return last_failure or Failure.cancelled(), attempt

            if tracker is not None:
                tracker.record_attempt()
            result = await self._attempt(operation)
            if isinstance(result, Success):
                return result, attempt + 1

            last_failure = result
            if attempt >= self.max_attempts - 1 or not is_retryable(result):
                return result, attempt + 1

            delay = self.delay_ms(attempt)
            logger.warning(
                "Attempt %d failed: %s. Retrying in %dms...",
                attempt + 1,
                result.message,
                delay,
            )
            if tracker is not None:
                tracker.record_retry(result, backoff_ms=delay)

            if await interruptible_sleep(delay / 1000.0, token):
                return result, attempt + 1

        assert last_failure is not None
        return last_failure, self.max_attempts

    async def call(
        self,
        operation: Operation,
        is_retryable: RetryPredicate = default_retryable,
        *,
        token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Like execute(), but unwraps the value and raises on final failure.

        Raises:
            RetryExhaustedError: carrying the final Failure.
        """
        result, attempts = await self._run(operation, is_retryable, token)
        if isinstance(result, Success):
            return result.value
        raise RetryExhaustedError(result, attempts=attempts)

    @staticmethod
    async def _attempt(operation: Operation) -> AttemptResult:
        try:
            value = await operation()
        except Exception as exc:
            return Failure.from_exception(exc)
        if isinstance(value, (Success, Failure)):
            return value
        return Success(value)


def with_retry(
    config: Optional[RetryConfig] = None,
    is_retryable: RetryPredicate = default_retryable,
):
    """
    Decorator for async functions: retry with backoff, raise when exhausted.

    Tracks retries via contextvars if a retry_tracking_context is active.

    Args:
        config: Retry configuration (defaults to RetryConfig()).
        is_retryable: Predicate over the typed Failure.

    Returns:
        Decorated coroutine function raising RetryExhaustedError on final failure.
    """
    policy = RetryPolicy(config)

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await policy.call(lambda: func(*args, **kwargs), is_retryable)

        return wrapper

    return decorator
