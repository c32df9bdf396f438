"""Error taxonomy for ledger operations.

Transient failures derive from RetryableError and are retried locally.
Insufficient funds are never retried; the scheduler applies a long cooldown.
Anything else is fatal.
"""


class RetryableError(Exception):
    """Exception that should be retried."""

    pass


class NetworkError(RetryableError):
    """Network-related error that should be retried."""

    pass


class APITimeoutError(RetryableError):
    """RPC timeout error that should be retried."""

    pass


class RateLimitError(RetryableError):
    """Rate limit error that should be retried."""

    def __init__(self, message: str = "", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class InsufficientFundsError(Exception):
    """Insufficient funds - should NOT be retried."""

    pass


class InsufficientStartingBalance(InsufficientFundsError):
    """Native balance is below the minimum required to start a cycle."""

    def __init__(self, balance: int, minimum: int):
        super().__init__(
            f"Insufficient funds to start the cycle: balance {balance} is below minimum {minimum}"
        )
        self.balance = balance
        self.minimum = minimum


class TransactionRevertedError(Exception):
    """Transaction was mined but reverted on chain."""

    def __init__(self, tx_hash: str, action: str = ""):
        super().__init__(f"{action or 'Transaction'} {tx_hash} reverted")
        self.tx_hash = tx_hash
        self.action = action


class MissingCredentialError(Exception):
    """Signing credential is not configured."""

    pass
