"""Process entry point: python -m wrapcycle."""

import asyncio
import logging
import signal
import sys
from typing import Optional

from . import config
from .config import Settings
from .context import RunContext
from .identity import load_account
from .ledger import Web3LedgerClient
from .log import configure_logging
from .resilience.errors import MissingCredentialError
from .scheduler import CycleScheduler

logger = logging.getLogger("wrapcycle")


def build_scheduler(settings: Settings) -> CycleScheduler:
    """Construct the ledger client and scheduler from settings.

    Raises:
        MissingCredentialError: If the signing key or contract address is missing
    """
    account = load_account(settings)
    if not settings.winj_contract_address:
        raise MissingCredentialError("WINJ_CONTRACT_ADDRESS is not set in the environment or .env file")

    ledger = Web3LedgerClient(
        account=account,
        rpc_url=settings.rpc_url,
        contract_address=settings.winj_contract_address,
        confirmation_timeout=settings.confirmation_timeout,
    )
    logger.info(f"Connecting to ledger via RPC: {settings.rpc_url}")
    logger.info(f"Wrapped token contract: {settings.winj_contract_address}")
    return CycleScheduler(RunContext.from_settings(settings, ledger))


async def run(scheduler: CycleScheduler, settings: Settings) -> None:
    """Run the scheduler in the configured mode until done or stopped."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            logger.debug(f"Signal handlers unsupported on this event loop, {sig.name} ignored")

    if settings.run_mode == "batch":
        await scheduler.run_batch(settings.batch_iterations)
    elif settings.run_mode == "scheduled":
        await scheduler.run_scheduled_batches(settings.batch_iterations)
    else:
        await scheduler.run_forever()


def main(settings: Optional[Settings] = None) -> int:
    """Load configuration, then run until stopped.

    Returns:
        Process exit status
    """
    settings = settings or config.settings
    configure_logging(settings.log_level)

    try:
        scheduler = build_scheduler(settings)
    except MissingCredentialError as e:
        logger.error(f"{e}. Exiting.")
        return 1

    asyncio.run(run(scheduler, settings))
    logger.info(f"Final status: {scheduler.get_status()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
