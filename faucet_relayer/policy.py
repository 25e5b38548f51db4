"""
Eligibility policies for faucet claims.

Two policies exist and a deployment runs exactly one of them:

- top_up: refill addresses whose balance is at or below a threshold,
  at most once per cooldown window.
- one_shot: every address may claim once, ever.

Evaluation is pure; the caller supplies the recipient's balance, its last
successful claim time and the current time.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from web3 import Web3

from .config import ClaimPolicyMode, Settings
from .errors import ConfigurationError, DenialReason


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED_SUFFICIENT_BALANCE = "denied_sufficient_balance"
    DENIED_COOLDOWN = "denied_cooldown"
    DENIED_ALREADY_CLAIMED = "denied_already_claimed"
    DENIED_INVALID_ADDRESS = "denied_invalid_address"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOWED

    @property
    def denial_reason(self) -> Optional[DenialReason]:
        return _DENIAL_REASONS.get(self)


_DENIAL_REASONS = {
    Decision.DENIED_SUFFICIENT_BALANCE: DenialReason.SUFFICIENT_BALANCE,
    Decision.DENIED_COOLDOWN: DenialReason.COOLDOWN,
    Decision.DENIED_ALREADY_CLAIMED: DenialReason.ALREADY_CLAIMED,
}


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of evaluating one claim. Produced per request, never stored."""

    address: str
    decision: Decision
    amount_wei: int = 0
    retry_after: Optional[float] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


@dataclass(frozen=True)
class ClaimPolicy:
    """Policy mode plus its constants, in wei and seconds."""

    mode: ClaimPolicyMode
    amount_wei: int
    balance_threshold_wei: int = 0
    cooldown_seconds: float = 0.0

    @property
    def needs_balance(self) -> bool:
        """Whether evaluation depends on the recipient's on-chain balance."""
        return self.mode is ClaimPolicyMode.TOP_UP

    @classmethod
    def top_up(
        cls,
        balance_threshold: Decimal = Decimal("0.05"),
        amount: Decimal = Decimal("0.1"),
        cooldown_seconds: float = 60.0,
    ) -> "ClaimPolicy":
        return cls(
            mode=ClaimPolicyMode.TOP_UP,
            amount_wei=int(Web3.to_wei(amount, "ether")),
            balance_threshold_wei=int(Web3.to_wei(balance_threshold, "ether")),
            cooldown_seconds=cooldown_seconds,
        )

    @classmethod
    def one_shot(cls, amount: Decimal = Decimal("0.05")) -> "ClaimPolicy":
        return cls(
            mode=ClaimPolicyMode.ONE_SHOT,
            amount_wei=int(Web3.to_wei(amount, "ether")),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClaimPolicy":
        if settings.claim_policy is ClaimPolicyMode.TOP_UP:
            return cls.top_up(
                balance_threshold=settings.balance_threshold,
                amount=settings.top_up_amount,
                cooldown_seconds=settings.cooldown_seconds,
            )
        if settings.claim_policy is ClaimPolicyMode.ONE_SHOT:
            return cls.one_shot(amount=settings.one_shot_amount)
        raise ConfigurationError("CLAIM_POLICY must be 'top_up' or 'one_shot'")


class EligibilityGuard:
    """Decides whether a validated address may claim right now."""

    def __init__(self, policy: ClaimPolicy):
        self.policy = policy

    def evaluate(
        self,
        address: str,
        current_balance: Optional[int],
        last_claim_at: Optional[float],
        now: float,
    ) -> EligibilityDecision:
        """
        Evaluate a claim under the configured policy.

        Args:
            address: recipient, already validated by the caller
            current_balance: recipient balance in wei (ignored in one_shot mode)
            last_claim_at: time of the recipient's last successful claim, if any
            now: current time, same clock as last_claim_at
        """
        if self.policy.mode is ClaimPolicyMode.ONE_SHOT:
            if last_claim_at is not None:
                return EligibilityDecision(address, Decision.DENIED_ALREADY_CLAIMED)
            return EligibilityDecision(address, Decision.ALLOWED, self.policy.amount_wei)

        if current_balance is None:
            raise ValueError("top_up policy requires the recipient balance")

        if current_balance > self.policy.balance_threshold_wei:
            return EligibilityDecision(address, Decision.DENIED_SUFFICIENT_BALANCE)

        if last_claim_at is not None:
            elapsed = now - last_claim_at
            if elapsed < self.policy.cooldown_seconds:
                return EligibilityDecision(
                    address,
                    Decision.DENIED_COOLDOWN,
                    retry_after=self.policy.cooldown_seconds - elapsed,
                )

        return EligibilityDecision(address, Decision.ALLOWED, self.policy.amount_wei)
