"""Retry logic and decorators using tenacity.

This module provides retry decorators for calls against the identity
provider and the document store, with exponential backoff, jitter, and
Retry-After handling for rate limits.
"""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from hub_migration.client.exceptions import NetworkError, RateLimitError, ServerError
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (NetworkError, ServerError, RateLimitError)


def _wait_with_retry_after(min_wait: float, max_wait: float) -> Callable[[RetryCallState], float]:
    """Build a wait strategy that honours Retry-After on 429 responses."""
    backoff = wait_random_exponential(multiplier=1, min=min_wait, max=max_wait)

    def wait(retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            error = outcome.exception()
            if isinstance(error, RateLimitError) and error.retry_after:
                return float(min(error.retry_after, max_wait))
        return backoff(retry_state)

    return wait


def retry_with_backoff(
    max_attempts: int = 5,
    min_wait: float = 2,
    max_wait: float = 60,
    retry_on_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[F], F]:
    """General retry decorator with exponential backoff and jitter.

    Handles network errors, server errors, and rate limits. Only async
    functions are supported; every client call in this package is a
    coroutine.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        retry_on_exceptions: Tuple of exception types to retry on

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff requires a coroutine function: {func.__name__}")

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt_obj in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=_wait_with_retry_after(min_wait, max_wait),
                retry=retry_if_exception_type(retry_on_exceptions),
                reraise=True,
            ):
                with attempt_obj:
                    attempt = attempt_obj.retry_state.attempt_number
                    if attempt > 1:
                        logger.info(
                            "retry_attempt",
                            function=func.__name__,
                            attempt=attempt,
                            max_attempts=max_attempts,
                        )
                    return await func(*args, **kwargs)

        return async_wrapper  # type: ignore

    return decorator

