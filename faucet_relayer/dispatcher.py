"""
Relay dispatcher: runs one faucet claim end to end.

Received -> Validated -> BalanceChecked -> EligibilityEvaluated
    -> Denied
    -> Dispatching -> Sent | Failed

Everything from the balance read to recording the claim happens under the
recipient's lock, so concurrent claims for one address are decided one at
a time. Broadcasts for different addresses are additionally serialized by
a single lock because they share the relay wallet's nonce sequence.

A claim is recorded only after the broadcast call returns a transaction
hash. If a broadcast fails at the transport level the transaction may
still have reached the node; nothing here detects that, so a client retry
after DispatchRejectedError can pay twice.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from .address import normalize_address
from .errors import (
    DispatchRejectedError,
    InvalidInputError,
    PolicyDeniedError,
    UpstreamUnavailableError,
)
from .ledger import LedgerClient, LedgerError, LedgerUnavailableError
from .policy import Decision, EligibilityGuard
from .store import ClaimLedger

logger = structlog.get_logger()


@dataclass(frozen=True)
class ClaimReceipt:
    """A transfer the node accepted for broadcast."""

    address: str
    tx_hash: str
    amount_wei: int
    claimed_at: float


class RelayDispatcher:
    """Validates, evaluates and dispatches faucet claims."""

    def __init__(
        self,
        ledger: LedgerClient,
        guard: EligibilityGuard,
        claims: Optional[ClaimLedger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.guard = guard
        self.claims = claims if claims is not None else ClaimLedger()
        self.clock = clock
        self._broadcast_lock = asyncio.Lock()

    async def claim(self, raw_address: object) -> ClaimReceipt:
        """
        Process one claim request.

        Returns:
            ClaimReceipt with the broadcast transaction hash

        Raises:
            InvalidInputError: address missing or malformed
            UpstreamUnavailableError: recipient balance could not be read
            PolicyDeniedError: the active policy refuses the claim
            DispatchRejectedError: the transfer could not be broadcast
        """
        address = normalize_address(raw_address)
        if address is None:
            logger.info(
                "claim_denied",
                decision=Decision.DENIED_INVALID_ADDRESS.value,
                raw=str(raw_address)[:64],
            )
            raise InvalidInputError()

        async with self.claims.locked(address):
            balance = await self._read_balance(address)
            last_claim_at = await self.claims.last_claim_of(address)
            now = self.clock()

            decision = self.guard.evaluate(address, balance, last_claim_at, now)
            if not decision.allowed:
                logger.info(
                    "claim_denied",
                    address=address,
                    decision=decision.decision.value,
                    balance_wei=balance,
                    retry_after=decision.retry_after,
                )
                details = None
                if decision.retry_after is not None:
                    details = f"Retry in {decision.retry_after:.0f}s"
                raise PolicyDeniedError(decision.decision.denial_reason, details)

            tx_hash = await self._dispatch(address, decision.amount_wei)

            # The broadcast returned; only now is the claim recorded.
            await self.claims.record_claim(address, now)

        logger.info(
            "claim_dispatched",
            address=address,
            tx_hash=tx_hash,
            amount_wei=decision.amount_wei,
        )
        return ClaimReceipt(
            address=address,
            tx_hash=tx_hash,
            amount_wei=decision.amount_wei,
            claimed_at=now,
        )

    async def _read_balance(self, address: str) -> Optional[int]:
        if not self.guard.policy.needs_balance:
            return None
        try:
            return await self.ledger.get_balance(address)
        except LedgerError as e:
            logger.warning("balance_query_failed", address=address, error=str(e))
            raise UpstreamUnavailableError(details=str(e)) from e
        except Exception as e:
            logger.exception("balance_query_failed", address=address, error=repr(e))
            raise UpstreamUnavailableError(details=repr(e)) from e

    async def _dispatch(self, address: str, amount_wei: int) -> str:
        try:
            async with self._broadcast_lock:
                return await self.ledger.send_transfer(address, amount_wei)
        except LedgerError as e:
            logger.error(
                "claim_dispatch_failed",
                address=address,
                amount_wei=amount_wei,
                error=str(e),
                outcome_ambiguous=isinstance(e, LedgerUnavailableError),
            )
            raise DispatchRejectedError(details=str(e)) from e
        except Exception as e:
            # Unclassified client failure; whether anything was broadcast is unknown.
            logger.exception(
                "claim_dispatch_failed",
                address=address,
                amount_wei=amount_wei,
                error=repr(e),
                outcome_ambiguous=True,
            )
            raise DispatchRejectedError(details=repr(e)) from e
