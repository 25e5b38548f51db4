"""
Health reporting for the relay wallet.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from .ledger import LedgerClient

logger = structlog.get_logger()


@dataclass(frozen=True)
class HealthReport:
    status: str
    relayer_address: str
    relayer_balance_wei: Optional[int] = None
    contract: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class HealthReporter:
    """Reads the relay wallet's own balance. Never raises."""

    def __init__(self, ledger: LedgerClient, relayer_address: str, contract: Optional[str] = None):
        self.ledger = ledger
        self.relayer_address = relayer_address
        self.contract = contract

    async def health(self) -> HealthReport:
        try:
            balance = await self.ledger.get_balance(self.relayer_address)
        except Exception as e:
            # Any failure degrades the report; health never raises.
            logger.warning("health_check_degraded", error=str(e), error_type=type(e).__name__)
            return HealthReport(
                status="error",
                relayer_address=self.relayer_address,
                contract=self.contract,
                error=str(e) or type(e).__name__,
            )

        return HealthReport(
            status="ok",
            relayer_address=self.relayer_address,
            relayer_balance_wei=balance,
            contract=self.contract,
        )
