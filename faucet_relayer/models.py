"""
Pydantic models for API requests and responses.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClaimRequest(BaseModel):
    """Request test funds for an address."""

    # Optional and untyped so a missing or non-string address is reported
    # as an invalid address rather than a schema error.
    address: Any = Field(None, description="Recipient EVM address (0x...)")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {"address": "0x1234567890abcdef1234567890abcdef12345678"}
            ]
        },
    )


class ClaimResponse(BaseModel):
    """Successful claim."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(True, description="Always true for a dispatched claim")
    tx_hash: str = Field(..., alias="txHash", description="Broadcast transaction hash (0x...)")


class ErrorResponse(BaseModel):
    """Denied or failed claim."""

    error: str = Field(..., description="User-facing reason")
    details: Optional[str] = Field(None, description="Additional detail")


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(..., description="ok or error")
    contract: Optional[str] = Field(None, description="Deployed contract address")
    relayer_address: str = Field(..., alias="relayerAddress", description="Relay wallet address")
    relayer_balance: Optional[str] = Field(
        None,
        alias="relayerBalance",
        description="Relay wallet balance in native units",
    )
    error: Optional[str] = Field(None, description="Error message if degraded")
