"""
Tests for the web3 ledger client.

The node is replaced by a mocked AsyncWeb3 so no network is needed.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from faucet_relayer.ledger import (
    TRANSFER_GAS_LIMIT,
    LedgerUnavailableError,
    TransferRejectedError,
    Web3LedgerClient,
)
from faucet_relayer.wallet import RelayWallet

from conftest import ALICE, TEST_PRIVATE_KEY, TEST_RELAYER_ADDRESS, ether


def resolved(value):
    """An already-completed awaitable, standing in for web3 property calls."""
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


@pytest.fixture
def client() -> Web3LedgerClient:
    wallet = RelayWallet.from_private_key(TEST_PRIVATE_KEY)
    return Web3LedgerClient("http://localhost:8545", wallet, chain_id=31337, timeout=0.05)


def mock_w3(nonce: int = 7, gas_price: int = 10**9, tx_hash: bytes = b"\x12" * 32) -> MagicMock:
    w3 = MagicMock()
    w3.to_checksum_address = Web3.to_checksum_address
    w3.to_hex = Web3.to_hex
    w3.eth.get_transaction_count = AsyncMock(return_value=nonce)
    w3.eth.send_raw_transaction = AsyncMock(return_value=tx_hash)
    w3.eth.get_balance = AsyncMock(return_value=ether("2"))
    w3.eth.gas_price = resolved(gas_price)
    return w3


class TestCallClassification:
    """Transport failures vs node refusals."""

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, client):
        with pytest.raises(LedgerUnavailableError, match="timed out"):
            await client._call("eth_getBalance", asyncio.sleep(1))

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, client):
        async def boom():
            raise aiohttp.ClientConnectionError("connection refused")

        with pytest.raises(LedgerUnavailableError, match="connection refused"):
            await client._call("eth_getBalance", boom())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [Web3Exception("nonce too low"), ValueError({"code": -32000, "message": "insufficient funds"})],
    )
    async def test_node_refusal_is_rejected(self, client, error):
        async def boom():
            raise error

        with pytest.raises(TransferRejectedError):
            await client._call("eth_sendRawTransaction", boom())


class TestWeb3LedgerClient:

    @pytest.mark.asyncio
    async def test_get_balance(self, client):
        client.w3 = mock_w3()
        assert await client.get_balance(ALICE.lower()) == ether("2")
        client.w3.eth.get_balance.assert_awaited_once_with(ALICE)

    @pytest.mark.asyncio
    async def test_send_transfer_signs_and_broadcasts(self, client):
        client.w3 = mock_w3(nonce=7)

        with patch.object(
            RelayWallet, "sign_transaction", autospec=True, side_effect=RelayWallet.sign_transaction
        ) as sign:
            tx_hash = await client.send_transfer(ALICE, ether("0.1"))

        assert tx_hash == "0x" + "12" * 32
        client.w3.eth.get_transaction_count.assert_awaited_once_with(TEST_RELAYER_ADDRESS, "pending")
        raw = client.w3.eth.send_raw_transaction.await_args.args[0]
        assert Account.recover_transaction(raw) == TEST_RELAYER_ADDRESS

        tx = sign.call_args.args[1]
        assert tx["gas"] == TRANSFER_GAS_LIMIT
        assert tx["nonce"] == 7
        assert tx["value"] == ether("0.1")
        assert tx["chainId"] == 31337
        assert tx["to"] == ALICE

    @pytest.mark.asyncio
    async def test_send_transfer_rejection(self, client):
        client.w3 = mock_w3()
        client.w3.eth.send_raw_transaction = AsyncMock(
            side_effect=ValueError({"code": -32000, "message": "insufficient funds"})
        )

        with pytest.raises(TransferRejectedError, match="insufficient funds"):
            await client.send_transfer(ALICE, ether("0.1"))

    @pytest.mark.asyncio
    async def test_signing_failure_is_rejected(self, client):
        client.w3 = mock_w3()

        with patch.object(
            RelayWallet, "sign_transaction", side_effect=TypeError("Transaction had invalid fields")
        ):
            with pytest.raises(TransferRejectedError, match="invalid fields"):
                await client.send_transfer(ALICE, ether("0.1"))

        client.w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_aclose_disconnects_provider(self, client):
        client.w3 = mock_w3()
        client.w3.provider.disconnect = AsyncMock()

        await client.aclose()

        client.w3.provider.disconnect.assert_awaited_once()
