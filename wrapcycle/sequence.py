"""Four-step wrap / transfer / withdraw sequence.

Steps run strictly in order:

S0 balance check -> S1 deposit -> S2 transfer -> S3 withdraw

S0 and S1 failures end the cycle as a failure. S2 and S3 failures are soft:
they are logged and the cycle still counts as a success.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .amounts import format_units, portion, random_amount
from .context import RunContext
from .ledger import ConfirmationReceipt, TransactionHandle, WalletState
from .resilience.classifier import OutcomeClass, classify
from .resilience.errors import InsufficientStartingBalance
from .resilience.retry import Operation


class SequenceStep(str, Enum):
    """Position of a sequence in its state machine."""

    BALANCE_CHECK = "BALANCE_CHECK"
    DEPOSIT = "DEPOSIT"
    TRANSFER = "TRANSFER"
    WITHDRAW = "WITHDRAW"
    DONE = "DONE"


class CycleStatus(str, Enum):
    """Terminal status of one cycle."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass
class CycleResult:
    """Outcome of one transaction sequence.

    A cycle whose transfer or withdrawal failed softly still has status
    SUCCESS; the failed steps are listed in ``soft_failures``.
    """

    status: CycleStatus
    failure_class: Optional[OutcomeClass] = None
    error: Optional[BaseException] = None
    failed_step: Optional[SequenceStep] = None
    soft_failures: tuple[SequenceStep, ...] = ()
    deposited: int = 0
    transferred: int = 0
    withdrawn: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is CycleStatus.SUCCESS

    @property
    def degraded(self) -> bool:
        """True if the cycle succeeded with at least one soft failure."""
        return self.succeeded and bool(self.soft_failures)

    @classmethod
    def failure(
        cls,
        error: BaseException,
        failed_step: Optional[SequenceStep] = None,
    ) -> "CycleResult":
        """Build a failed result, classifying the error."""
        return cls(
            status=CycleStatus.FAILURE,
            failure_class=classify(error),
            error=error,
            failed_step=failed_step,
        )


class TransactionSequence:
    """Runs one cycle of wrap, transfer and partial withdraw."""

    def __init__(self, context: RunContext):
        """Initialize the sequence.

        Args:
            context: Run context carrying the ledger, logger, retry policy
                and amount configuration
        """
        self.context = context
        self.ledger = context.ledger
        self.log = context.logger
        self.config = context.sequence
        self.step = SequenceStep.BALANCE_CHECK

    async def run(self) -> CycleResult:
        """Execute S0 through S3.

        Returns:
            SUCCESS unless the balance check or the deposit failed
        """
        address = self.ledger.address
        self.log.info(f"Using wallet: {address}")
        await self.log_balances("Initial State")

        try:
            self.step = SequenceStep.BALANCE_CHECK
            await self.check_starting_balance()

            self.step = SequenceStep.DEPOSIT
            deposited = await self.deposit()
        except Exception as e:
            self.log.error(f"Cycle aborted at {self.step.value}: {e}")
            return CycleResult.failure(e, failed_step=self.step)

        await self.log_balances("After Deposit")

        soft_failures = []

        self.step = SequenceStep.TRANSFER
        transferred = 0
        try:
            transferred = await self.transfer(deposited)
        except Exception as e:
            self.log.error(f"Transfer failed: {e}")
            soft_failures.append(SequenceStep.TRANSFER)
        await self.log_balances("After Transfer")

        self.step = SequenceStep.WITHDRAW
        withdrawn = 0
        try:
            withdrawn = await self.withdraw()
        except Exception as e:
            self.log.error(f"Withdraw failed: {e}")
            soft_failures.append(SequenceStep.WITHDRAW)
        await self.log_balances("Final State")

        self.step = SequenceStep.DONE
        return CycleResult(
            status=CycleStatus.SUCCESS,
            soft_failures=tuple(soft_failures),
            deposited=deposited,
            transferred=transferred,
            withdrawn=withdrawn,
        )

    async def check_starting_balance(self) -> int:
        """S0: read the native balance and require the configured minimum.

        Raises:
            InsufficientStartingBalance: If the balance is below the minimum
        """
        balance = await self._execute(
            "get balance", lambda: self.ledger.get_balance(self.ledger.address)
        )
        if balance < self.config.min_start_balance:
            raise InsufficientStartingBalance(balance, self.config.min_start_balance)
        return balance

    async def deposit(self) -> int:
        """S1: wrap a random amount of the native asset.

        Returns:
            Deposited amount in smallest units
        """
        amount = random_amount(
            self.config.deposit_min,
            self.config.deposit_max,
            precision=self.config.deposit_precision,
            rng=self.context.rng,
        )
        self.log.info(f">>> STEP 1: Depositing (wrapping) {format_units(amount)} native to wrapped...")

        await self._submit_and_confirm("deposit", lambda: self.ledger.submit_deposit(amount))
        self.log.success("Deposit completed successfully.")
        return amount

    async def transfer(self, deposited: int) -> int:
        """S2: send a random share of the deposit to a fresh address.

        Returns:
            Transferred amount in smallest units
        """
        percent = self.context.rng.randint(*self.config.transfer_percent)
        amount = portion(deposited, percent)
        destination = self.ledger.create_ephemeral_destination()
        self.log.info(
            f">>> STEP 2: Transferring {percent}% ({format_units(amount)} wrapped) "
            f"to new address {destination}..."
        )

        await self._submit_and_confirm(
            "transfer", lambda: self.ledger.submit_transfer(destination, amount)
        )
        self.log.success("Transfer completed successfully.")
        return amount

    async def withdraw(self) -> int:
        """S3: unwrap a random share of the current wrapped balance.

        Returns:
            Withdrawn amount, 0 if the step was skipped
        """
        self.log.info(">>> STEP 3: Withdrawing a random share of wrapped back to native...")
        balance = await self._execute(
            "get wrapped balance",
            lambda: self.ledger.get_wrapped_balance(self.ledger.address),
        )
        if balance == 0:
            self.log.info("No wrapped balance to withdraw. Skipping withdrawal.")
            return 0

        percent = self.context.rng.randint(*self.config.withdraw_percent)
        amount = portion(balance, percent)
        if amount <= 0:
            self.log.info("Calculated withdrawal amount is too small. Skipping withdrawal.")
            return 0

        self.log.info(
            f"Current wrapped balance is {format_units(balance)}. "
            f"Withdrawing {percent}% ({format_units(amount)})."
        )
        await self._submit_and_confirm("withdraw", lambda: self.ledger.submit_withdraw(amount))
        self.log.success("Partial withdraw completed successfully.")
        return amount

    async def read_wallet_state(self) -> WalletState:
        """Read both balances of the signing address."""
        address = self.ledger.address
        native = await self._execute("get balance", lambda: self.ledger.get_balance(address))
        wrapped = await self._execute(
            "get wrapped balance", lambda: self.ledger.get_wrapped_balance(address)
        )
        return WalletState(address=address, native_balance=native, wrapped_balance=wrapped)

    async def log_balances(self, label: str) -> Optional[WalletState]:
        """Log a balance snapshot. Read failures are logged, never raised."""
        try:
            state = await self.read_wallet_state()
        except Exception as e:
            self.log.error(f"Failed to check balances ({label}): {e}")
            return None

        self.log.info(f"--- Balance Check: {label} ---")
        self.log.info(f"Address       : {state.address}")
        self.log.info(f"Native balance: {format_units(state.native_balance)}")
        self.log.info(f"Wrapped balance: {format_units(state.wrapped_balance)}")
        return state

    async def _submit_and_confirm(
        self,
        action: str,
        submit: Callable[[], Awaitable[TransactionHandle]],
    ) -> ConfirmationReceipt:
        # Submission and confirmation get independent retry budgets
        handle = await self._execute(f"submit {action}", submit)
        self.log.info(f"{action.capitalize()} transaction sent. Hash: {handle.tx_hash}")
        if self.config.explorer_url:
            self.log.info(f"View on Explorer: {self.config.explorer_url}/tx/{handle.tx_hash}")

        return await self._execute(
            f"confirm {action}", lambda: self.ledger.wait_for_confirmation(handle)
        )

    async def _execute(self, name: str, call: Callable[[], Awaitable[Any]]) -> Any:
        return await self.context.executor.execute(
            Operation(name=name, call=call), self.context.retry_policy
        )
