"""Cycle scheduler.

Runs the transaction sequence repeatedly and paces cycles by outcome:
randomized delay after success, fixed cooldown after failure, and a long
cooldown when the wallet has run out of funds.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .context import RunContext
from .resilience.classifier import OutcomeClass, classify
from .sequence import CycleResult, TransactionSequence

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Runs cycles in bounded batches or continuously."""

    def __init__(self, context: RunContext):
        """Initialize scheduler.

        Args:
            context: Run context shared by every cycle
        """
        self.context = context
        self.log = context.logger
        self.cycles_run = 0
        self.cycles_succeeded = 0
        self.cycles_failed = 0
        self.last_result: Optional[CycleResult] = None
        self.last_cycle_at: Optional[datetime] = None

    @property
    def stopped(self) -> bool:
        return self.context.cancel_token.cancelled

    def stop(self) -> None:
        """Request a cooperative stop at the next cycle boundary or wait."""
        if not self.stopped:
            self.log.info("Stop requested, finishing current step...")
        self.context.cancel_token.cancel()

    async def run_cycle(self) -> CycleResult:
        """Run one transaction sequence. Never raises for cycle errors."""
        sequence = TransactionSequence(self.context)
        try:
            result = await sequence.run()
        except Exception as e:
            logger.exception(f"Unexpected error in cycle at {sequence.step.value}")
            result = CycleResult.failure(e, failed_step=sequence.step)

        self._record(result)
        return result

    def next_delay(self, result: CycleResult) -> float:
        """Choose the wait before the next continuous cycle.

        Args:
            result: Outcome of the cycle that just ended

        Returns:
            Delay in seconds
        """
        schedule = self.context.schedule
        if result.succeeded:
            return self.context.delays.range(*schedule.success_delay)

        failure_class = classify(result.error) if result.error is not None else result.failure_class
        if failure_class is OutcomeClass.RESOURCE_DEPLETED:
            return schedule.depleted_cooldown
        return schedule.failure_cooldown

    async def run_batch(self, iterations: int) -> List[CycleResult]:
        """Run exactly ``iterations`` cycles with randomized pauses between them.

        Args:
            iterations: Number of cycles to run

        Returns:
            Results of the cycles that ran
        """
        if iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {iterations}")

        self.log.header(f"STARTING NEW BATCH: {iterations} iterations")
        results: List[CycleResult] = []

        for i in range(1, iterations + 1):
            if self.stopped:
                break

            self.log.header(f"Iteration {i} of {iterations}")
            result = await self.run_cycle()
            results.append(result)

            if result.succeeded:
                self.log.success(f"Iteration {i} completed successfully.")
            else:
                self.log.error(f"Iteration {i} failed: {result.error}")

            if i < iterations:
                delay = self.context.delays.range(*self.context.schedule.batch_delay)
                self.log.info(f"Waiting {delay:.0f} seconds before next iteration...")
                if await self._wait(delay):
                    break

        self.log.header("BATCH COMPLETED")
        return results

    async def run_forever(self) -> None:
        """Run cycles until stopped, pacing them by outcome."""
        self.log.info("Starting continuous cycle loop...")

        while not self.stopped:
            self.log.header(f"Cycle {self.cycles_run + 1}")
            result = await self.run_cycle()
            delay = self.next_delay(result)

            if result.succeeded:
                self.log.success(f"Cycle completed. Next cycle in {delay / 60:.1f} minutes.")
            elif result.failure_class is OutcomeClass.RESOURCE_DEPLETED:
                self.log.error(
                    f"Cycle failed, out of funds: {result.error}. Cooling down for {delay / 60:.0f} minutes."
                )
            else:
                self.log.error(f"Cycle failed: {result.error}. Retrying in {delay / 60:.0f} minutes.")

            if await self._wait(delay):
                break

        self.log.info("Cycle loop stopped.")

    async def run_scheduled_batches(self, iterations: int) -> None:
        """Run a batch, wait the configured batch interval, and repeat until stopped."""
        interval = self.context.schedule.batch_interval

        while not self.stopped:
            await self.run_batch(iterations)
            self.log.info(f"Next batch is scheduled to run in {interval / 3600:.1f} hours.")
            if await self._wait(interval):
                break

        self.log.info("Batch schedule stopped.")

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler counters.

        Returns:
            Status information
        """
        last = self.last_result
        return {
            "stopped": self.stopped,
            "cycles_run": self.cycles_run,
            "cycles_succeeded": self.cycles_succeeded,
            "cycles_failed": self.cycles_failed,
            "last_status": last.status.value if last else None,
            "last_failure_class": last.failure_class.value if last and last.failure_class else None,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
        }

    async def _wait(self, seconds: float) -> bool:
        # Returns True when a stop was requested
        if self.stopped:
            return True
        return await self.context.cancel_token.wait(seconds)

    def _record(self, result: CycleResult) -> None:
        self.cycles_run += 1
        if result.succeeded:
            self.cycles_succeeded += 1
        else:
            self.cycles_failed += 1
        self.last_result = result
        self.last_cycle_at = datetime.now(timezone.utc)
