"""Explicit run context passed to the sequence and the scheduler."""

import random
from dataclasses import dataclass, field
from typing import Optional

from .amounts import parse_units
from .config import Settings
from .delays import CancellationToken, DelaySource
from .ledger import LedgerClient
from .log import CycleLogger
from .resilience.retry import RetryExecutor, RetryPolicy


@dataclass(frozen=True)
class SequenceConfig:
    """Amount bounds for one transaction sequence, in smallest units / percent."""

    min_start_balance: int = parse_units("0.05")
    deposit_min: str = "0.005"
    deposit_max: str = "0.015"
    deposit_precision: int = 5
    transfer_percent: tuple[int, int] = (30, 70)
    withdraw_percent: tuple[int, int] = (10, 50)
    explorer_url: str = ""

    def __post_init__(self):
        for name in ("transfer_percent", "withdraw_percent"):
            low, high = getattr(self, name)
            if not 0 <= low <= high <= 100:
                raise ValueError(f"Invalid {name} range: {low}-{high}")
        if parse_units(self.deposit_min) > parse_units(self.deposit_max):
            raise ValueError(f"Invalid deposit range: {self.deposit_min}-{self.deposit_max}")


@dataclass(frozen=True)
class ScheduleConfig:
    """Inter-cycle delay policy, all values in seconds."""

    success_delay: tuple[float, float] = (60.0, 600.0)
    failure_cooldown: float = 300.0
    depleted_cooldown: float = 3600.0
    batch_delay: tuple[float, float] = (15.0, 60.0)
    batch_interval: float = 24 * 60 * 60


@dataclass
class RunContext:
    """Everything a running scheduler needs, constructed once at startup."""

    ledger: LedgerClient
    logger: CycleLogger = field(default_factory=CycleLogger)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    delays: DelaySource = field(default_factory=DelaySource)
    rng: random.Random = field(default_factory=random.Random)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    executor: Optional[RetryExecutor] = None

    def __post_init__(self):
        if self.executor is None:
            # Backoff waits end early on shutdown
            self.executor = RetryExecutor(sleep=self.cancel_token.wait)

    @classmethod
    def from_settings(cls, settings: Settings, ledger: LedgerClient, **overrides) -> "RunContext":
        """Build a context from application settings."""
        return cls(
            ledger=ledger,
            retry_policy=RetryPolicy(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                backoff_multiplier=settings.retry_backoff_multiplier,
                max_delay=settings.retry_max_delay,
                jitter=settings.retry_jitter,
            ),
            sequence=SequenceConfig(
                min_start_balance=parse_units(settings.min_start_balance),
                deposit_min=settings.deposit_min,
                deposit_max=settings.deposit_max,
                deposit_precision=settings.deposit_precision,
                transfer_percent=(settings.transfer_percent_min, settings.transfer_percent_max),
                withdraw_percent=(settings.withdraw_percent_min, settings.withdraw_percent_max),
                explorer_url=settings.explorer_url,
            ),
            schedule=ScheduleConfig(
                success_delay=(settings.success_delay_min, settings.success_delay_max),
                failure_cooldown=settings.failure_cooldown,
                depleted_cooldown=settings.depleted_cooldown,
                batch_delay=(settings.batch_delay_min, settings.batch_delay_max),
                batch_interval=settings.batch_interval_hours * 60 * 60,
            ),
            **overrides,
        )
