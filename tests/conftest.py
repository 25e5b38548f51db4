"""
Shared fixtures: an in-process ledger double and a controllable clock.
"""

import asyncio
from typing import Optional

import pytest
from eth_account import Account
from web3 import Web3

# Well-known development key (Hardhat/Anvil account #0). Never holds real funds.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_RELAYER_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address

ALICE = Web3.to_checksum_address("0x" + "11" * 20)
BOB = Web3.to_checksum_address("0x" + "22" * 20)


def ether(amount: str) -> int:
    return int(Web3.to_wei(amount, "ether"))


class FakeLedger:
    """LedgerClient double that records every call."""

    def __init__(self, default_balance: int = 0, send_delay: float = 0.0):
        self.balances: dict[str, int] = {}
        self.default_balance = default_balance
        self.send_delay = send_delay
        self.balance_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.balance_calls = 0
        self.send_calls = 0
        self.transfers: list[tuple[str, int]] = []
        self._in_flight_sends = 0
        self.max_concurrent_sends = 0

    @property
    def call_count(self) -> int:
        return self.balance_calls + self.send_calls

    def set_balance(self, address: str, wei: int) -> None:
        self.balances[address.lower()] = wei

    async def get_balance(self, address: str) -> int:
        self.balance_calls += 1
        await asyncio.sleep(0)
        if self.balance_error is not None:
            raise self.balance_error
        return self.balances.get(address.lower(), self.default_balance)

    async def send_transfer(self, to: str, value: int) -> str:
        self.send_calls += 1
        self._in_flight_sends += 1
        self.max_concurrent_sends = max(self.max_concurrent_sends, self._in_flight_sends)
        try:
            await asyncio.sleep(self.send_delay)
            if self.send_error is not None:
                raise self.send_error
            self.transfers.append((to, value))
            return "0x" + f"{len(self.transfers):064x}"
        finally:
            self._in_flight_sends -= 1


class FakeClock:
    """Callable clock advanced by hand."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
