"""
Configuration for the faucet relayer.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class ClaimPolicyMode(str, Enum):
    """Which eligibility policy a deployment runs."""

    TOP_UP = "top_up"
    ONE_SHOT = "one_shot"


class Settings(BaseSettings):
    """
    Relayer configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # HTTP server
    host: str = Field(default="127.0.0.1", description="API host")
    port: int = Field(default=3000, description="API port")
    debug: bool = Field(default=False, description="Enable debug mode")
    allowed_origins: list[str] = Field(
        default=["*"],
        description="CORS allowed origins",
    )

    # EVM
    evm_rpc_url: Optional[str] = Field(
        default=None,
        description="JSON-RPC endpoint of the testnet node",
        validation_alias=AliasChoices("EVM_RPC_URL", "RPC_URL", "evm_rpc_url"),
    )
    chain_id: Optional[int] = Field(
        default=None,
        description="EVM chain ID (read from the node when unset)",
    )
    private_key: Optional[str] = Field(
        default=None,
        description="Private key of the relay wallet (required)",
    )
    rpc_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout applied to every RPC call",
    )

    # Claim policy
    # Required; startup is refused while unset.
    claim_policy: Optional[ClaimPolicyMode] = Field(
        default=None,
        description="Eligibility policy: top_up or one_shot",
    )
    balance_threshold: Decimal = Field(
        default=Decimal("0.05"),
        ge=0,
        description="top_up: recipients above this balance (native units) are denied",
    )
    top_up_amount: Decimal = Field(
        default=Decimal("0.1"),
        gt=0,
        description="top_up: amount sent per claim (native units)",
    )
    one_shot_amount: Decimal = Field(
        default=Decimal("0.05"),
        gt=0,
        description="one_shot: amount sent on the single allowed claim (native units)",
    )
    cooldown_seconds: float = Field(
        default=60.0,
        ge=0,
        description="top_up: minimum time between successful claims per address",
    )

    # Informational
    contract_address: Optional[str] = Field(
        default=None,
        description="Deployed contract address reported by /health",
    )
    contract_address_file: Optional[Path] = Field(
        default=None,
        description="File holding the deployed contract address (used if CONTRACT_ADDRESS is unset)",
    )

    def require_runtime(self) -> None:
        """
        Check the settings needed to serve traffic.

        Raises:
            ConfigurationError: naming every missing required setting
        """
        missing = []
        if not self.private_key:
            missing.append("PRIVATE_KEY")
        if not self.evm_rpc_url:
            missing.append("EVM_RPC_URL")
        if self.claim_policy is None:
            missing.append("CLAIM_POLICY")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    def resolve_contract_address(self) -> Optional[str]:
        """Return the configured contract address, reading the address file if needed."""
        if self.contract_address:
            return self.contract_address.strip()
        if self.contract_address_file is None:
            return None
        try:
            return self.contract_address_file.read_text(encoding="utf-8").strip() or None
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read CONTRACT_ADDRESS_FILE {self.contract_address_file}: {e}"
            ) from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
