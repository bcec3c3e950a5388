"""
Retry utilities with tenacity.

Provides the exponential-backoff policy used for transient failures in
network operations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

if TYPE_CHECKING:
    from tenderwatch.core.config.models import HttpConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 30  # seconds
DEFAULT_MULTIPLIER = 2


class wait_retry_after(wait_base):
    """Wait at least the server's ``retry_after`` hint when the error carries one.

    Falls back to ``backoff`` otherwise. The result never exceeds ``max_wait``.
    """

    def __init__(self, backoff: wait_base, max_wait: float) -> None:
        self.backoff = backoff
        self.max_wait = max_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        wait = self.backoff(retry_state)
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            retry_after = getattr(outcome.exception(), "retry_after", None)
            if retry_after is not None:
                wait = max(wait, float(retry_after))
        return min(wait, self.max_wait)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_wait: float = DEFAULT_MIN_WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        multiplier: float = DEFAULT_MULTIPLIER,
        jitter: bool = True,
        retry_exceptions: tuple[type[BaseException], ...] | None = None,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            min_wait: Minimum wait time in seconds
            max_wait: Maximum wait time in seconds
            multiplier: Exponential backoff multiplier
            jitter: Add random jitter to wait times
            retry_exceptions: Exception types to retry on
        """
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.multiplier = multiplier
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions or (Exception,)

    @classmethod
    def from_http_config(
        cls,
        config: HttpConfig,
        retry_exceptions: tuple[type[BaseException], ...] | None = None,
    ) -> "RetryConfig":
        return cls(
            max_attempts=config.max_attempts,
            min_wait=config.min_wait_seconds,
            max_wait=config.max_wait_seconds,
            multiplier=config.backoff_multiplier,
            jitter=config.jitter,
            retry_exceptions=retry_exceptions,
        )

    def wait_strategy(self) -> wait_base:
        return wait_retry_after(self._backoff(), self.max_wait)

    def _backoff(self) -> wait_base:
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.multiplier,
                min=self.min_wait,
                max=self.max_wait,
            )
        return wait_exponential(
            multiplier=self.multiplier,
            min=self.min_wait,
            max=self.max_wait,
        )

    def retrying(self) -> AsyncRetrying:
        """Build a tenacity controller for this policy (reraises the last error)."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait_strategy(),
            retry=retry_if_exception_type(self.retry_exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )


async def retry_async(
    coro_func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    on_attempt: Callable[[int], None] | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function with retry logic.

    Args:
        coro_func: Async function to call
        *args: Positional arguments
        config: Retry configuration
        on_attempt: Called with the 1-based attempt number before each try
        **kwargs: Keyword arguments

    Returns:
        Function result

    Raises:
        The last exception once all attempts fail
    """
    if config is None:
        config = RetryConfig()

    async for attempt in config.retrying():
        with attempt:
            if on_attempt is not None:
                on_attempt(attempt.retry_state.attempt_number)
            return await coro_func(*args, **kwargs)

    raise RuntimeError("retry loop exited without a result")  # pragma: no cover
