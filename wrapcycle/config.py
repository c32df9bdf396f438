"""Configuration for wrapcycle."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Credentials
    testnet_private_key: Optional[str] = None

    # Ledger
    rpc_url: str = "https://k8s.testnet.json-rpc.injective.network/"
    winj_contract_address: Optional[str] = None
    explorer_url: str = "https://testnet.blockscout.injective.network"
    confirmation_timeout: float = 120.0  # Seconds to wait for a receipt

    # Sequence amounts (native units, decimal strings)
    min_start_balance: str = "0.05"
    deposit_min: str = "0.005"
    deposit_max: str = "0.015"
    deposit_precision: int = 5
    transfer_percent_min: int = 30
    transfer_percent_max: int = 70
    withdraw_percent_min: int = 10
    withdraw_percent_max: int = 50

    # Retry policy
    retry_max_attempts: int = 3
    retry_base_delay: float = 2.0  # Seconds
    retry_backoff_multiplier: float = 2.0
    retry_max_delay: float = 60.0
    retry_jitter: float = 0.0  # Fraction of each backoff randomized (0-1)

    # Scheduler
    run_mode: Literal["continuous", "batch", "scheduled"] = "continuous"
    batch_iterations: int = 5
    batch_delay_min: float = 15.0  # Seconds between batch iterations
    batch_delay_max: float = 60.0
    batch_interval_hours: float = 24.0  # Pause between scheduled batches
    success_delay_min: float = 60.0  # Seconds after a successful cycle
    success_delay_max: float = 600.0
    failure_cooldown: float = 300.0  # Seconds after a failed cycle
    depleted_cooldown: float = 3600.0  # Seconds after running out of funds

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
