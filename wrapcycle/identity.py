"""Signing identity loading.

The private key is read once at startup and is read-only afterwards.
"""

import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .config import Settings
from .resilience.errors import MissingCredentialError

logger = logging.getLogger(__name__)


def load_signing_key(settings: Settings) -> str:
    """Return the configured private key.

    Raises:
        MissingCredentialError: If TESTNET_PRIVATE_KEY is not set
    """
    key = (settings.testnet_private_key or "").strip()
    if not key:
        raise MissingCredentialError("TESTNET_PRIVATE_KEY is not set in the environment or .env file")
    return key


def load_account(settings: Settings) -> LocalAccount:
    """Build the signing account from settings.

    Raises:
        MissingCredentialError: If the key is missing or malformed
    """
    key = load_signing_key(settings)
    try:
        account = Account.from_key(key)
    except Exception as e:
        # Never echo the key itself
        raise MissingCredentialError(f"TESTNET_PRIVATE_KEY is not a valid private key: {type(e).__name__}") from e

    logger.info(f"Loaded signing identity {account.address}")
    return account
