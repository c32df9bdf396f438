"""Resilience layer for ledger operations.

This module provides:
- Failure classification (retryable / resource depleted / fatal)
- Retry with exponential backoff
- The error taxonomy shared by the executor and the scheduler
"""

from .classifier import OutcomeClass, classify
from .errors import (
    APITimeoutError,
    InsufficientFundsError,
    InsufficientStartingBalance,
    MissingCredentialError,
    NetworkError,
    RateLimitError,
    RetryableError,
    TransactionRevertedError,
)
from .retry import Operation, RetryExecutor, RetryPolicy, calculate_backoff

__all__ = [
    "OutcomeClass",
    "classify",
    "Operation",
    "RetryExecutor",
    "RetryPolicy",
    "calculate_backoff",
    "RetryableError",
    "NetworkError",
    "APITimeoutError",
    "RateLimitError",
    "InsufficientFundsError",
    "InsufficientStartingBalance",
    "TransactionRevertedError",
    "MissingCredentialError",
]
