"""
Ledger client: balance reads and value transfers against an EVM node.
"""

import asyncio
from typing import Any, Awaitable, Optional, Protocol, TypeVar

import aiohttp
import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from .wallet import RelayWallet

logger = structlog.get_logger()

T = TypeVar("T")

# Plain value transfer to an EOA.
TRANSFER_GAS_LIMIT = 21_000


class LedgerError(Exception):
    """Base class for ledger client failures."""


class LedgerUnavailableError(LedgerError):
    """The node could not be reached or did not answer in time."""


class TransferRejectedError(LedgerError):
    """The node answered but refused the request."""


class LedgerClient(Protocol):
    """Capabilities the relayer needs from the chain."""

    async def get_balance(self, address: str) -> int:
        """Return the balance of ``address`` in wei."""
        ...

    async def send_transfer(self, to: str, value: int) -> str:
        """Sign and broadcast a transfer from the relay wallet; return the tx hash."""
        ...


class Web3LedgerClient:
    """
    Async JSON-RPC ledger client backed by web3.py.

    Transfers are signed locally with the relay wallet and broadcast with
    eth_sendRawTransaction. send_transfer returns once the node accepts the
    broadcast; it does not wait for a receipt.
    """

    def __init__(
        self,
        rpc_url: str,
        wallet: RelayWallet,
        chain_id: Optional[int] = None,
        timeout: float = 15.0,
    ):
        self.rpc_url = rpc_url
        self.wallet = wallet
        self.timeout = timeout
        self.w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._chain_id = chain_id
        # Nonce lookup, signing and broadcast must not interleave.
        self._send_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self.wallet.address

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Run one RPC call with a timeout and classify its failure."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LedgerUnavailableError(f"{operation} timed out after {self.timeout}s") from e
        except (aiohttp.ClientError, OSError) as e:
            raise LedgerUnavailableError(f"{operation} failed: {e}") from e
        except (Web3Exception, ValueError) as e:
            raise TransferRejectedError(f"{operation} rejected: {e}") from e

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._call("eth_chainId", self.w3.eth.chain_id)
        return self._chain_id

    async def get_balance(self, address: str) -> int:
        balance = await self._call(
            "eth_getBalance",
            self.w3.eth.get_balance(self.w3.to_checksum_address(address)),
        )
        return int(balance)

    async def send_transfer(self, to: str, value: int) -> str:
        async with self._send_lock:
            chain_id = await self.get_chain_id()
            # "pending" so back-to-back broadcasts get consecutive nonces.
            nonce = await self._call(
                "eth_getTransactionCount",
                self.w3.eth.get_transaction_count(self.address, "pending"),
            )
            gas_price = await self._call("eth_gasPrice", self.w3.eth.gas_price)

            tx: dict[str, Any] = {
                "chainId": chain_id,
                "nonce": nonce,
                "to": self.w3.to_checksum_address(to),
                "value": value,
                "gas": TRANSFER_GAS_LIMIT,
                "gasPrice": gas_price,
            }

            try:
                raw = self.wallet.sign_transaction(tx)
            except Exception as e:
                raise TransferRejectedError(f"signing failed: {e}") from e
            tx_hash = await self._call(
                "eth_sendRawTransaction",
                self.w3.eth.send_raw_transaction(raw),
            )

        tx_hash_hex = self.w3.to_hex(tx_hash)
        logger.info(
            "transfer_broadcast",
            tx_hash=tx_hash_hex,
            to=tx["to"],
            value_wei=value,
            nonce=nonce,
        )
        return tx_hash_hex

    async def aclose(self) -> None:
        """Close the provider's cached HTTP sessions."""
        await self.w3.provider.disconnect()
