"""
Error taxonomy for the relayer.

Every failure leaving the core is one of the RelayError subclasses below;
the HTTP layer renders them as ``{"error": ..., "details": ...}`` with the
attached status code. ConfigurationError is separate because it is only
raised before the service accepts traffic.
"""

from enum import Enum
from typing import Optional


class ConfigurationError(Exception):
    """Required startup configuration is missing or invalid."""


class RelayError(Exception):
    """Base class for classified claim failures."""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(self, error: Optional[str] = None, details: Optional[str] = None):
        self.error = error or self.error
        self.details = details
        super().__init__(self.error if details is None else f"{self.error}: {details}")


class InvalidInputError(RelayError):
    """Missing or malformed recipient address."""

    status_code = 400
    error = "Invalid address"


class DenialReason(str, Enum):
    SUFFICIENT_BALANCE = "sufficient_balance"
    COOLDOWN = "cooldown"
    ALREADY_CLAIMED = "already_claimed"


_DENIAL_RESPONSES: dict[DenialReason, tuple[int, str]] = {
    DenialReason.SUFFICIENT_BALANCE: (400, "Balance is sufficient. No top-up needed."),
    DenialReason.COOLDOWN: (429, "Please wait a moment before claiming again."),
    DenialReason.ALREADY_CLAIMED: (409, "Address has already claimed."),
}


class PolicyDeniedError(RelayError):
    """The claim is well-formed but the active policy refuses it."""

    def __init__(self, reason: DenialReason, details: Optional[str] = None):
        self.reason = reason
        self.status_code, message = _DENIAL_RESPONSES[reason]
        super().__init__(message, details)


class UpstreamUnavailableError(RelayError):
    """The ledger node could not be reached before anything was sent."""

    status_code = 503
    error = "Ledger node unavailable"


class DispatchRejectedError(RelayError):
    """The transfer could not be broadcast."""

    status_code = 500
    error = "Transaction failed"
