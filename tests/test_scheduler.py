"""Tests for the cycle scheduler."""

import pytest
from dataclasses import replace
from unittest.mock import AsyncMock, patch

from wrapcycle.amounts import parse_units
from wrapcycle.resilience.classifier import OutcomeClass
from wrapcycle.resilience.errors import InsufficientFundsError, NetworkError
from wrapcycle.scheduler import CycleScheduler
from wrapcycle.sequence import CycleResult, CycleStatus, SequenceStep


def record_waits(scheduler, stop_after=None):
    """Replace the scheduler's wait with one that records and never sleeps."""
    waits = []

    async def fake_wait(seconds):
        waits.append(seconds)
        if stop_after is not None and len(waits) >= stop_after:
            scheduler.stop()
        return scheduler.stopped

    scheduler._wait = fake_wait
    return waits


@pytest.mark.unit
class TestNextDelay:
    """Test inter-cycle delay selection."""

    @pytest.fixture
    def scheduler(self, run_context):
        return CycleScheduler(run_context)

    def test_success_delay_in_range(self, scheduler):
        result = CycleResult(status=CycleStatus.SUCCESS)
        for _ in range(50):
            assert 60.0 <= scheduler.next_delay(result) <= 600.0

    def test_resource_depleted_uses_long_cooldown(self, scheduler):
        result = CycleResult.failure(InsufficientFundsError("insufficient funds"))
        assert scheduler.next_delay(result) == 3600.0

    def test_retryable_failure_uses_failure_cooldown(self, scheduler):
        result = CycleResult.failure(NetworkError("timeout"))
        assert scheduler.next_delay(result) == 300.0

    def test_fatal_failure_uses_failure_cooldown(self, scheduler):
        result = CycleResult.failure(ValueError("execution reverted"))
        assert scheduler.next_delay(result) == 300.0

    def test_failure_without_error_uses_class(self, scheduler):
        result = CycleResult(
            status=CycleStatus.FAILURE, failure_class=OutcomeClass.RESOURCE_DEPLETED
        )
        assert scheduler.next_delay(result) == 3600.0


@pytest.mark.unit
class TestRunCycle:
    """Test single cycle execution."""

    async def test_records_success(self, run_context):
        scheduler = CycleScheduler(run_context)

        result = await scheduler.run_cycle()

        assert result.succeeded
        status = scheduler.get_status()
        assert status["cycles_run"] == 1
        assert status["cycles_succeeded"] == 1
        assert status["last_status"] == "SUCCESS"
        assert status["last_cycle_at"] is not None

    async def test_unexpected_error_becomes_failure(self, run_context):
        scheduler = CycleScheduler(run_context)

        with patch(
            "wrapcycle.scheduler.TransactionSequence.run",
            new=AsyncMock(side_effect=RuntimeError("bug")),
        ):
            result = await scheduler.run_cycle()

        assert result.status is CycleStatus.FAILURE
        assert result.failure_class is OutcomeClass.FATAL
        assert result.failed_step is SequenceStep.BALANCE_CHECK
        assert scheduler.cycles_failed == 1


@pytest.mark.unit
class TestRunBatch:
    """Test bounded batch mode."""

    async def test_runs_exactly_n_iterations(self, run_context):
        scheduler = CycleScheduler(run_context)
        waits = record_waits(scheduler)

        results = await scheduler.run_batch(3)

        assert len(results) == 3
        assert all(r.succeeded for r in results)
        # No wait after the last iteration
        assert len(waits) == 2
        assert all(15.0 <= w <= 60.0 for w in waits)

    async def test_failed_iteration_does_not_stop_batch(self, run_context, fake_ledger):
        scheduler = CycleScheduler(run_context)
        record_waits(scheduler)
        fake_ledger.fail("submit_deposit", ValueError("execution reverted"))

        results = await scheduler.run_batch(3)

        assert [r.status for r in results] == [
            CycleStatus.FAILURE,
            CycleStatus.SUCCESS,
            CycleStatus.SUCCESS,
        ]
        assert scheduler.cycles_failed == 1

    async def test_stop_during_wait_ends_batch(self, run_context):
        scheduler = CycleScheduler(run_context)
        record_waits(scheduler, stop_after=1)

        results = await scheduler.run_batch(5)

        assert len(results) == 1

    async def test_stopped_before_start(self, run_context):
        scheduler = CycleScheduler(run_context)
        scheduler.stop()

        assert await scheduler.run_batch(3) == []

    async def test_invalid_iterations(self, run_context):
        with pytest.raises(ValueError):
            await CycleScheduler(run_context).run_batch(0)


@pytest.mark.unit
class TestRunForever:
    """Test continuous mode."""

    async def test_success_delays(self, run_context):
        scheduler = CycleScheduler(run_context)
        waits = record_waits(scheduler, stop_after=3)

        await scheduler.run_forever()

        assert scheduler.cycles_run == 3
        assert all(60.0 <= w <= 600.0 for w in waits)

    async def test_depleted_wallet_cools_down(self, run_context, fake_ledger):
        fake_ledger.native = parse_units("0.001")
        scheduler = CycleScheduler(run_context)
        waits = record_waits(scheduler, stop_after=2)

        await scheduler.run_forever()

        assert waits == [3600.0, 3600.0]
        assert scheduler.cycles_failed == 2

    async def test_failure_never_terminates_loop(self, run_context, fake_ledger):
        fake_ledger.fail("submit_deposit", ValueError("execution reverted"))
        scheduler = CycleScheduler(run_context)
        waits = record_waits(scheduler, stop_after=2)

        await scheduler.run_forever()

        assert waits[0] == 300.0
        assert 60.0 <= waits[1] <= 600.0
        assert scheduler.get_status()["cycles_succeeded"] == 1

    async def test_stopped_before_start_runs_nothing(self, run_context):
        scheduler = CycleScheduler(run_context)
        scheduler.stop()

        await scheduler.run_forever()

        assert scheduler.cycles_run == 0

    async def test_stop_during_cycle_skips_wait(self, run_context):
        """Test a stop requested mid-cycle ends the loop without waiting an hour."""
        run_context.schedule = replace(run_context.schedule, success_delay=(3600.0, 3600.0))
        scheduler = CycleScheduler(run_context)

        original_run_cycle = scheduler.run_cycle

        async def run_then_stop():
            result = await original_run_cycle()
            scheduler.stop()
            return result

        scheduler.run_cycle = run_then_stop

        await scheduler.run_forever()

        assert scheduler.cycles_run == 1
        assert scheduler.stopped


@pytest.mark.unit
class TestScheduledBatches:
    """Test repeating batches."""

    async def test_waits_batch_interval_between_batches(self, run_context):
        scheduler = CycleScheduler(run_context)
        waits = record_waits(scheduler, stop_after=3)

        await scheduler.run_scheduled_batches(2)

        # in-batch pause, batch interval, in-batch pause of the second batch
        assert waits[1] == 86400.0
        assert 15.0 <= waits[2] <= 60.0
        assert scheduler.cycles_run == 3
