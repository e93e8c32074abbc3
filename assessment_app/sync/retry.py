"""
Retry Policy - Innovation Assessment Client
assessment_app/sync/retry.py

Exponential backoff around remote calls:

    attempt 0 -> call; on retryable failure sleep base_delay * 2**0
    attempt 1 -> call; on retryable failure sleep base_delay * 2**1
    ...
    after max_retries retries the last error is raised

Every attempt runs under asyncio.wait_for(timeout); a timeout cancels the
request and counts as a retryable NetworkTimeoutException.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from assessment_app.config import settings
from assessment_app.core.exceptions import NetworkTimeoutException, ServiceException

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
RetryCallback = Callable[[int, float, ServiceException], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    timeout: Optional[float] = 12.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number `attempt + 1` (attempt is 0-based)."""
        return self.base_delay * (2 ** attempt)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.SAVE_MAX_RETRIES,
            base_delay=settings.SAVE_RETRY_BASE_DELAY_SECONDS,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
        )


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ServiceException) and exc.retryable


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    operation_name: str = "request",
    sleep: Sleep = asyncio.sleep,
    on_retry: Optional[RetryCallback] = None,
) -> T:
    """
    Await `operation()` with timeout and backoff.

    Non-retryable ServiceExceptions (validation, conflict, not found) and
    anything that is not a ServiceException are raised immediately.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Retry limits and timeout.
        operation_name: Used in log events and timeout messages.
        sleep: Awaitable sleep, replaceable in tests.
        on_retry: Called with (attempt, delay, error) before each backoff sleep.
    """
    attempt = 0
    while True:
        try:
            if policy.timeout is None:
                return await operation()
            try:
                return await asyncio.wait_for(operation(), timeout=policy.timeout)
            except asyncio.TimeoutError:
                raise NetworkTimeoutException(operation_name, policy.timeout) from None
        except ServiceException as e:
            if not e.retryable or attempt >= policy.max_retries:
                logger.warning(
                    "remote_call_failed",
                    operation=operation_name,
                    attempts=attempt + 1,
                    error=e.message,
                    retryable=e.retryable,
                )
                raise
            delay = policy.delay_for(attempt)
            logger.info(
                "remote_call_retrying",
                operation=operation_name,
                attempt=attempt + 1,
                delay_seconds=delay,
                error=e.message,
            )
            if on_retry is not None:
                on_retry(attempt, delay, e)
            await sleep(delay)
            attempt += 1
