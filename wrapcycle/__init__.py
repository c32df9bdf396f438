"""wrapcycle: resilient wrap / transfer / withdraw cycles against an EVM ledger."""

__version__ = "0.1.0"

from .context import RunContext
from .ledger import LedgerClient, Web3LedgerClient
from .scheduler import CycleScheduler
from .sequence import CycleResult, CycleStatus, TransactionSequence

__all__ = [
    "RunContext",
    "LedgerClient",
    "Web3LedgerClient",
    "CycleScheduler",
    "CycleResult",
    "CycleStatus",
    "TransactionSequence",
]
