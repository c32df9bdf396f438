"""Pytest configuration and fixtures for wrapcycle tests."""

import random
from typing import Dict, List, Optional

import pytest

from wrapcycle.amounts import parse_units
from wrapcycle.context import RunContext, ScheduleConfig, SequenceConfig
from wrapcycle.delays import DelaySource
from wrapcycle.ledger import ConfirmationReceipt, LedgerClient, TransactionHandle
from wrapcycle.resilience.errors import InsufficientFundsError
from wrapcycle.resilience.retry import RetryExecutor, RetryPolicy

WALLET_ADDRESS = "0x" + "11" * 20


class FakeLedger(LedgerClient):
    """In-memory ledger that applies transactions on confirmation.

    ``failures`` maps a method name to exceptions raised by its next calls,
    in order.
    """

    def __init__(self, native: Optional[int] = None, wrapped: int = 0):
        self.native = parse_units("0.1") if native is None else native
        self.wrapped = wrapped
        self.calls: List[str] = []
        self.failures: Dict[str, List[Exception]] = {}
        self.pending: Dict[str, tuple] = {}
        self.transfers: List[tuple] = []
        self.wrapped_reads: List[int] = []
        self._tx_counter = 0
        self._dest_counter = 0

    @property
    def address(self) -> str:
        return WALLET_ADDRESS

    def fail(self, method: str, *errors: Exception) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)

    def _handle(self, action: str, *payload) -> TransactionHandle:
        self._tx_counter += 1
        tx_hash = f"0x{self._tx_counter:064x}"
        self.pending[tx_hash] = (action, *payload)
        return TransactionHandle(tx_hash=tx_hash, action=action)

    async def get_balance(self, address: str) -> int:
        self._enter("get_balance")
        return self.native

    async def get_wrapped_balance(self, address: str) -> int:
        self._enter("get_wrapped_balance")
        self.wrapped_reads.append(self.wrapped)
        return self.wrapped

    async def submit_deposit(self, amount: int) -> TransactionHandle:
        self._enter("submit_deposit")
        if amount > self.native:
            raise InsufficientFundsError("insufficient funds for gas * price + value")
        return self._handle("deposit", amount)

    async def submit_transfer(self, destination: str, amount: int) -> TransactionHandle:
        self._enter("submit_transfer")
        return self._handle("transfer", amount, destination)

    async def submit_withdraw(self, amount: int) -> TransactionHandle:
        self._enter("submit_withdraw")
        return self._handle("withdraw", amount)

    async def wait_for_confirmation(self, handle: TransactionHandle) -> ConfirmationReceipt:
        self._enter("wait_for_confirmation")
        action, amount, *rest = self.pending.pop(handle.tx_hash)
        if action == "deposit":
            self.native -= amount
            self.wrapped += amount
        elif action == "transfer":
            self.wrapped -= amount
            self.transfers.append((rest[0], amount))
        elif action == "withdraw":
            self.wrapped -= amount
            self.native += amount
        return ConfirmationReceipt(tx_hash=handle.tx_hash, block_number=self._tx_counter, status=1)

    def create_ephemeral_destination(self) -> str:
        self._dest_counter += 1
        return f"0x{self._dest_counter:040x}"


class RecordingSleep:
    """Sleep replacement that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> bool:
        self.delays.append(seconds)
        return False


@pytest.fixture
def fake_ledger():
    """In-memory ledger with 0.1 native units."""
    return FakeLedger()


@pytest.fixture
def recording_sleep():
    """Sleep that records delays."""
    return RecordingSleep()


@pytest.fixture
def retry_policy():
    """Three attempts, 1s then 2s backoff."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, backoff_multiplier=2.0)


@pytest.fixture
def run_context(fake_ledger, recording_sleep, retry_policy):
    """Run context wired to the fake ledger with deterministic randomness."""
    return RunContext(
        ledger=fake_ledger,
        retry_policy=retry_policy,
        sequence=SequenceConfig(explorer_url="https://explorer.test"),
        schedule=ScheduleConfig(
            success_delay=(60.0, 600.0),
            failure_cooldown=300.0,
            depleted_cooldown=3600.0,
            batch_delay=(15.0, 60.0),
            batch_interval=86400.0,
        ),
        delays=DelaySource(random.Random(7)),
        rng=random.Random(42),
        executor=RetryExecutor(sleep=recording_sleep),
    )
