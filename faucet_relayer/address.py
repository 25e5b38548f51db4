"""
EVM address validation.
"""

from typing import Optional

from web3 import Web3


def normalize_address(raw: object) -> Optional[str]:
    """
    Validate a user-supplied EVM address and return its checksum form.

    Accepts 0x-prefixed 40-hex-digit strings. All-lowercase and
    all-uppercase hex is accepted as-is; mixed case must carry a valid
    EIP-55 checksum.

    Returns None if the input is missing or malformed.
    """
    if not isinstance(raw, str):
        return None

    candidate = raw.strip()
    if not candidate or not Web3.is_address(candidate):
        return None

    # is_address also accepts bare 40-hex strings; require the prefix.
    if not candidate.lower().startswith("0x"):
        return None

    return Web3.to_checksum_address(candidate)
