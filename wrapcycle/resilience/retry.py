"""Retry executor with exponential backoff.

Provides automatic retry for transient ledger failures with:
- Configurable attempt count
- Exponential backoff with optional jitter
- Classification-driven retry decisions
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .classifier import OutcomeClass, classify
from .errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    backoff_multiplier: float = 2.0  # Exponential backoff base
    max_delay: float = 60.0  # Maximum delay in seconds
    jitter: float = 0.0  # Random jitter factor (0-1)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            )
        if not 0 <= self.jitter <= 1:
            raise ValueError(f"jitter must be within [0, 1], got {self.jitter}")


@dataclass(frozen=True)
class Operation:
    """A single named remote call."""

    name: str
    call: Callable[[], Awaitable[Any]]


def calculate_backoff(
    attempt: int,
    policy: RetryPolicy,
) -> float:
    """Calculate backoff delay for a retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        policy: Retry policy

    Returns:
        Delay in seconds
    """
    # Exponential backoff: base_delay * (backoff_multiplier ^ attempt)
    delay = policy.base_delay * (policy.backoff_multiplier**attempt)

    if policy.jitter:
        jitter_range = delay * policy.jitter
        delay += random.uniform(-jitter_range, jitter_range)

    return min(delay, policy.max_delay)


class RetryExecutor:
    """Runs operations, retrying those that fail with transient errors."""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Callable[[BaseException], OutcomeClass] = classify,
    ):
        """Initialize the executor.

        Args:
            sleep: Coroutine used to suspend between attempts
            classifier: Maps an exception to an outcome class
        """
        self._sleep = sleep
        self._classify = classifier

    async def execute(self, operation: Operation, policy: RetryPolicy) -> Any:
        """Run an operation under a retry policy.

        Args:
            operation: Operation to run
            policy: Retry policy

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The last observed error once attempts are exhausted,
                or the first error classified as fatal or resource depleted,
                or the pending error when a stop interrupts the backoff wait
        """
        for attempt in range(policy.max_attempts):
            try:
                return await operation.call()
            except Exception as e:
                outcome = self._classify(e)

                if outcome is not OutcomeClass.RETRYABLE_ERROR:
                    logger.error(
                        f"Attempt {attempt + 1}/{policy.max_attempts} of {operation.name} "
                        f"failed ({outcome.value}), not retrying: {e}"
                    )
                    raise

                if attempt == policy.max_attempts - 1:
                    logger.error(
                        f"All {policy.max_attempts} attempts failed for {operation.name}: {e}"
                    )
                    raise

                delay = calculate_backoff(attempt, policy)
                if isinstance(e, RateLimitError) and e.retry_after > delay:
                    delay = e.retry_after
                logger.warning(
                    f"Attempt {attempt + 1}/{policy.max_attempts} of {operation.name} "
                    f"failed ({outcome.value}): {e}. Retrying in {delay:.2f}s"
                )

                # A sleep that reports True was interrupted by a stop request
                if await self._sleep(delay):
                    logger.warning(f"Stop requested, abandoning retries of {operation.name}")
                    raise

        # max_attempts >= 1 guarantees the loop returns or raises
        raise RuntimeError(f"{operation.name} ran zero attempts")
