"""
Relay wallet: the single signing identity that funds every transfer.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount

from .errors import ConfigurationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class RelayWallet:
    """Key material and derived address of the relay wallet."""

    account: LocalAccount

    @property
    def address(self) -> str:
        return self.account.address

    @classmethod
    def from_private_key(cls, private_key: Optional[str]) -> "RelayWallet":
        """
        Build the wallet from its secret.

        Raises:
            ConfigurationError: if the key is absent or not a valid secp256k1 key
        """
        if not private_key or not private_key.strip():
            raise ConfigurationError("PRIVATE_KEY is missing")

        try:
            account = Account.from_key(private_key.strip())
        except Exception as e:
            # Never include the key itself in the message.
            raise ConfigurationError(f"PRIVATE_KEY is invalid: {type(e).__name__}") from e

        logger.info("relay_wallet_loaded", address=account.address)
        return cls(account=account)

    def sign_transaction(self, tx: dict[str, Any]) -> bytes:
        """Sign a transaction dict and return the raw bytes to broadcast."""
        signed = self.account.sign_transaction(tx)
        return signed.raw_transaction

    def __repr__(self) -> str:
        return f"RelayWallet(address={self.address})"


def generate_wallet() -> tuple[str, str]:
    """
    Create a fresh random key.

    Returns:
        (private_key_hex, address)
    """
    account = Account.create()
    return "0x" + account.key.hex().removeprefix("0x"), account.address
