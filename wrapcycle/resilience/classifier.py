"""Failure classification for ledger errors.

Single point of truth for retry eligibility. Used per attempt by the retry
executor and per cycle by the scheduler to pick the inter-cycle delay.
"""

import asyncio
from enum import Enum

import aiohttp
from web3.exceptions import ContractLogicError, TimeExhausted

from .errors import InsufficientFundsError, RetryableError, TransactionRevertedError


class OutcomeClass(str, Enum):
    """Outcome of a single operation or cycle."""

    SUCCESS = "SUCCESS"
    RETRYABLE_ERROR = "RETRYABLE_ERROR"
    RESOURCE_DEPLETED = "RESOURCE_DEPLETED"
    FATAL = "FATAL"


INSUFFICIENT_FUNDS_MARKERS = ("insufficient funds",)

TRANSIENT_MESSAGE_MARKERS = (
    "server error",
    "network error",
    "timeout",
    "timed out",
    "http 503",
    "status code 503",
    "503 service",
    "service temporarily unavailable",
)

# ethers-style error codes carried on the exception
TRANSIENT_CODES = frozenset({"SERVER_ERROR", "NETWORK_ERROR", "TIMEOUT"})

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})

TRANSIENT_EXCEPTIONS = (
    RetryableError,
    TimeoutError,
    asyncio.TimeoutError,
    ConnectionError,
    aiohttp.ClientError,
    TimeExhausted,
)

# Errors the chain itself returned; their text carries hashes and addresses
# that must not be scanned for transient markers
FATAL_EXCEPTIONS = (TransactionRevertedError, ContractLogicError)


def _status_of(error: BaseException):
    for holder in (error, getattr(error, "response", None)):
        if holder is None:
            continue
        for attr in ("status", "status_code"):
            value = getattr(holder, attr, None)
            if isinstance(value, int):
                return value
    return None


def is_resource_depleted(error: BaseException) -> bool:
    """Check whether an error indicates insufficient funds."""
    if isinstance(error, InsufficientFundsError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in INSUFFICIENT_FUNDS_MARKERS)


def is_transient(error: BaseException) -> bool:
    """Check whether an error carries a transient network marker."""
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.upper() in TRANSIENT_CODES:
        return True

    if _status_of(error) in TRANSIENT_STATUS_CODES:
        return True

    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGE_MARKERS)


def classify(error: BaseException) -> OutcomeClass:
    """Classify an error raised by a ledger operation.

    Rules are evaluated in priority order:

    1. insufficient funds -> RESOURCE_DEPLETED
    2. revert or contract-logic error -> FATAL
    3. transient network marker -> RETRYABLE_ERROR
    4. anything else -> FATAL

    Args:
        error: Exception raised by the operation

    Returns:
        Outcome class for the error
    """
    if is_resource_depleted(error):
        return OutcomeClass.RESOURCE_DEPLETED
    if isinstance(error, FATAL_EXCEPTIONS):
        return OutcomeClass.FATAL
    if is_transient(error):
        return OutcomeClass.RETRYABLE_ERROR
    return OutcomeClass.FATAL
