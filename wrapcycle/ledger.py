"""Ledger client capability and its web3 implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted

from .resilience.errors import (
    APITimeoutError,
    NetworkError,
    RateLimitError,
    TransactionRevertedError,
)

logger = logging.getLogger(__name__)

# Node replies to a re-sent transaction it has already accepted or mined
ALREADY_BROADCAST_MARKERS = (
    "already known",
    "known transaction",
    "already imported",
    "nonce too low",
)

TRANSIENT_HTTP_STATUSES = frozenset({502, 503, 504})


# Minimal WETH9-style ABI for the wrapped native token
WINJ_ABI: List[Dict[str, Any]] = [
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
    {
        "name": "withdraw",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "wad", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "dst", "type": "address"},
            {"name": "wad", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


@dataclass(frozen=True)
class TransactionHandle:
    """A submitted, not yet confirmed, transaction."""

    tx_hash: str
    action: str


@dataclass(frozen=True)
class ConfirmationReceipt:
    """Receipt of a mined transaction."""

    tx_hash: str
    block_number: int
    status: int
    gas_used: int = 0


@dataclass(frozen=True)
class WalletState:
    """Balances of an address at a point in time."""

    address: str
    native_balance: int
    wrapped_balance: int


class LedgerClient(ABC):
    """Capability to read balances and submit wrap/transfer/withdraw calls."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address of the signing identity."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance in smallest units."""

    @abstractmethod
    async def get_wrapped_balance(self, address: str) -> int:
        """Wrapped-asset balance in smallest units."""

    @abstractmethod
    async def submit_deposit(self, amount: int) -> TransactionHandle:
        """Wrap ``amount`` of the native asset."""

    @abstractmethod
    async def submit_transfer(self, destination: str, amount: int) -> TransactionHandle:
        """Transfer ``amount`` of the wrapped asset to ``destination``."""

    @abstractmethod
    async def submit_withdraw(self, amount: int) -> TransactionHandle:
        """Unwrap ``amount`` of the wrapped asset."""

    @abstractmethod
    async def wait_for_confirmation(self, handle: TransactionHandle) -> ConfirmationReceipt:
        """Wait until the transaction is mined."""

    @abstractmethod
    def create_ephemeral_destination(self) -> str:
        """Return a fresh address whose private key is discarded."""


class Web3LedgerClient(LedgerClient):
    """LedgerClient for an EVM chain and a WETH9-style wrapped token.

    A submitted transaction is signed once and kept until its confirmation
    has been awaited. Submitting the same call again in the meantime, as the
    retry executor does after a failed broadcast, re-sends the same signed
    bytes under the same nonce, so a broadcast the node accepted before the
    failure cannot be duplicated.
    """

    def __init__(
        self,
        account: LocalAccount,
        rpc_url: str,
        contract_address: str,
        confirmation_timeout: float = 120.0,
    ):
        """Initialize the client.

        Args:
            account: Local signing account
            rpc_url: JSON-RPC endpoint
            contract_address: Wrapped token contract address
            confirmation_timeout: Seconds to wait for a receipt
        """
        self.account = account
        self.rpc_url = rpc_url
        self.confirmation_timeout = confirmation_timeout
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(contract_address),
            abi=WINJ_ABI,
        )
        # (call key, signed transaction) of the last unconfirmed submission
        self._pending: Optional[Tuple[Tuple[Any, ...], Any]] = None

    @property
    def address(self) -> str:
        return self.account.address

    async def get_balance(self, address: str) -> int:
        with transport_errors("get balance"):
            return await self.w3.eth.get_balance(address)

    async def get_wrapped_balance(self, address: str) -> int:
        with transport_errors("get wrapped balance"):
            return await self.contract.functions.balanceOf(address).call()

    async def submit_deposit(self, amount: int) -> TransactionHandle:
        return await self._send(
            "deposit", ("deposit", amount), self.contract.functions.deposit(), value=amount
        )

    async def submit_transfer(self, destination: str, amount: int) -> TransactionHandle:
        destination = AsyncWeb3.to_checksum_address(destination)
        return await self._send(
            "transfer",
            ("transfer", destination, amount),
            self.contract.functions.transfer(destination, amount),
        )

    async def submit_withdraw(self, amount: int) -> TransactionHandle:
        return await self._send(
            "withdraw", ("withdraw", amount), self.contract.functions.withdraw(amount)
        )

    async def wait_for_confirmation(self, handle: TransactionHandle) -> ConfirmationReceipt:
        with transport_errors(f"confirm {handle.action}"):
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                handle.tx_hash, timeout=self.confirmation_timeout
            )

        if self._pending is not None and _hash_of(self._pending[1]) == handle.tx_hash:
            self._pending = None

        if receipt["status"] != 1:
            raise TransactionRevertedError(handle.tx_hash, handle.action)

        return ConfirmationReceipt(
            tx_hash=handle.tx_hash,
            block_number=receipt["blockNumber"],
            status=receipt["status"],
            gas_used=receipt.get("gasUsed", 0),
        )

    def create_ephemeral_destination(self) -> str:
        return Account.create().address

    async def _send(
        self, action: str, key: Tuple[Any, ...], function: Any, value: int = 0
    ) -> TransactionHandle:
        """Sign a contract call, or reuse its unconfirmed signature, and broadcast it.

        Args:
            action: Name used in logs and on the handle
            key: Identifies the call and its arguments
            function: Bound contract function
            value: Native amount sent with the call

        Returns:
            Handle carrying the hash of the signed transaction
        """
        rebroadcast = self._pending is not None and self._pending[0] == key
        if rebroadcast:
            signed = self._pending[1]
        else:
            with transport_errors(f"prepare {action}"):
                nonce = await self.w3.eth.get_transaction_count(self.address, "pending")
                tx = await function.build_transaction(
                    {"from": self.address, "value": value, "nonce": nonce}
                )
            signed = self.account.sign_transaction(tx)
            self._pending = (key, signed)

        handle = TransactionHandle(tx_hash=_hash_of(signed), action=action)
        try:
            with transport_errors(f"submit {action}"):
                await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            if not (rebroadcast and is_already_broadcast(e)):
                raise
            logger.info(f"{action} transaction {handle.tx_hash} already reached the node: {e}")
            return handle

        logger.debug(f"Broadcast {action} transaction {handle.tx_hash}")
        return handle


def _hash_of(signed: Any) -> str:
    return AsyncWeb3.to_hex(signed.hash)


def _retry_after(headers: Any) -> float:
    value = (headers or {}).get("Retry-After")
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def is_already_broadcast(error: BaseException) -> bool:
    """Check whether a node rejected a transaction because it already has it."""
    message = str(error).lower()
    return any(marker in message for marker in ALREADY_BROADCAST_MARKERS)


@contextmanager
def transport_errors(action: str) -> Iterator[None]:
    """Translate transport failures of a remote call into the error taxonomy.

    Connection failures become NetworkError, timeouts become APITimeoutError
    and HTTP 429 becomes RateLimitError carrying the server's Retry-After.
    Other errors, including JSON-RPC errors from the node, pass through.
    """
    try:
        yield
    except TimeExhausted as e:
        raise APITimeoutError(f"{action} timed out: {e}") from e
    except aiohttp.ClientResponseError as e:
        if e.status == 429:
            raise RateLimitError(
                f"{action} rate limited (HTTP 429)", retry_after=_retry_after(e.headers)
            ) from e
        if e.status in TRANSIENT_HTTP_STATUSES:
            raise NetworkError(f"{action} failed with HTTP {e.status}") from e
        raise
    except (asyncio.TimeoutError, TimeoutError) as e:
        raise APITimeoutError(f"{action} timed out") from e
    except (aiohttp.ClientError, ConnectionError) as e:
        raise NetworkError(f"{action} failed: network error ({type(e).__name__})") from e
