"""Randomized delays and cooperative cancellation."""

import asyncio
import random
from typing import Optional


class DelaySource:
    """Produces randomized wait durations within a bounded range."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def range(self, minimum: float, maximum: float) -> float:
        """Return a value uniformly distributed in [minimum, maximum]."""
        if minimum > maximum:
            raise ValueError(f"Invalid delay range: {minimum} > {maximum}")
        return self._rng.uniform(minimum, maximum)


class CancellationToken:
    """Cooperative stop signal shared by the scheduler and its waits."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self, seconds: float) -> bool:
        """Suspend for up to ``seconds``.

        Returns:
            True if cancellation was requested before the delay elapsed
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            return False
        return True
