"""
Retry orchestration with exponential backoff.

Only transient failures are retried. Persistent failures and exhausted
retries are raised as OnboardingError, which carries the full
ClassifiedError so UI code can render the recovery path without
re-classifying.
"""

import asyncio
import math
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from calmirror.config import settings
from calmirror.infrastructure.observability.logging import get_logger, log_retry_attempt
from calmirror.models.domain.error_domain import ClassifiedError

logger = get_logger(__name__)

T = TypeVar("T")

# Maximum number of automatic retries for transient errors
MAX_RETRIES = settings.MAX_RETRIES

# Base delay in milliseconds for exponential backoff
BASE_DELAY_MS = settings.BASE_DELAY_MS

JITTER_RATIO = 0.25


class RetryState(str, Enum):
    """States the orchestrator moves through for one logical operation."""

    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED_PERSISTENT = "failed_persistent"
    FAILED_EXHAUSTED = "failed_exhausted"


class OnboardingError(Exception):
    """
    Error that carries the classified failure.

    Raised by retry_with_backoff when a failure is persistent or retries
    are exhausted.
    """

    def __init__(
        self,
        classified: ClassifiedError,
        attempts: int = 1,
        state: RetryState = RetryState.FAILED_PERSISTENT,
    ):
        super().__init__(classified.message)
        self.classified = classified
        self.attempts = attempts
        self.state = state

    @property
    def retry_count(self) -> int:
        """Retries made before giving up (attempts minus the first one)."""
        return max(self.attempts - 1, 0)


def calculate_backoff_delay(attempt: int, base_delay_ms: int = BASE_DELAY_MS) -> int:
    """
    Calculate the delay for an exponential backoff retry.

    delay = base_delay_ms * 2^attempt (0-indexed), with +/- 25% jitter to
    avoid a thundering herd.

    Args:
        attempt: Retry attempt number (0-indexed)
        base_delay_ms: Base delay in milliseconds

    Returns:
        int: Delay in milliseconds
    """
    exponential_delay = base_delay_ms * (2**attempt)
    jitter = exponential_delay * JITTER_RATIO * (2 * random.random() - 1)
    # rounding must not step outside the jitter band for small bases
    low = math.ceil(exponential_delay * (1 - JITTER_RATIO))
    high = math.floor(exponential_delay * (1 + JITTER_RATIO))
    return min(max(round(exponential_delay + jitter), low), high)


async def _sleep_ms(delay_ms: int) -> None:
    await asyncio.sleep(delay_ms / 1000)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    classify_error: Callable[[BaseException], ClassifiedError],
    max_retries: int = MAX_RETRIES,
    on_retry: Callable[[int, ClassifiedError], None] | None = None,
    delay_fn: Callable[[int], Awaitable[None]] | None = None,
    *,
    base_delay_ms: int = BASE_DELAY_MS,
    operation_name: str = "operation",
) -> T:
    """
    Execute an async operation with automatic retry for transient errors.

    Attempts are strictly sequential. There is no built-in deadline; wrap
    the call in asyncio.wait_for and treat the timeout as exhaustion.

    Args:
        operation: Zero-argument coroutine function to execute
        classify_error: Maps a caught exception to a ClassifiedError
        max_retries: Maximum number of retries after the first attempt
        on_retry: Called with (attempt, classified) before each retry
        delay_fn: Awaited with the backoff delay in milliseconds
            (defaults to asyncio.sleep)
        base_delay_ms: Base delay handed to calculate_backoff_delay
        operation_name: Label used in log lines

    Returns:
        The operation's result

    Raises:
        OnboardingError: If the failure is persistent or retries are exhausted
    """
    sleep = delay_fn or _sleep_ms
    state = RetryState.ATTEMPTING
    attempt = 0

    while True:
        try:
            result = await operation()
        except Exception as e:
            classified = classify_error(e)

            if classified.severity == "persistent":
                state = RetryState.FAILED_PERSISTENT
                logger.warning(
                    "Operation failed with persistent error",
                    operation=operation_name,
                    attempts=attempt + 1,
                    error_code=classified.code,
                    provider=classified.provider,
                    state=state.value,
                )
                raise OnboardingError(classified, attempts=attempt + 1, state=state) from e

            if attempt >= max_retries:
                state = RetryState.FAILED_EXHAUSTED
                logger.error(
                    "Operation failed after all retries",
                    operation=operation_name,
                    attempts=attempt + 1,
                    error_code=classified.code,
                    provider=classified.provider,
                    state=state.value,
                )
                raise OnboardingError(classified, attempts=attempt + 1, state=state) from e

            state = RetryState.WAITING
            if on_retry is not None:
                on_retry(attempt, classified)

            delay_ms = calculate_backoff_delay(attempt, base_delay_ms)
            log_retry_attempt(operation_name, attempt, classified.code, delay_ms)
            await sleep(delay_ms)

            attempt += 1
            state = RetryState.ATTEMPTING
            continue

        state = RetryState.SUCCEEDED
        if attempt:
            logger.info(
                "Operation recovered after retry",
                operation=operation_name,
                attempts=attempt + 1,
                state=state.value,
            )
        return result
