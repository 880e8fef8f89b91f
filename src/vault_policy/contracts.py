from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PolicyTag(str, Enum):
    ACTIVE = "Active"
    COOLDOWN = "Cooldown"
    STRESS_SKIP = "StressSkip"
    BUDGET_EXHAUSTED = "BudgetExhausted"


@dataclass(frozen=True)
class PolicyInputs:
    """Gating inputs; amounts are unrounded 18-decimal integers, ``None`` is unknown."""

    now: int
    next_allowed_at: int | None
    stress_ratio_bps: int | None
    stress_max_bps: int | None
    spent_today_abs: int | None
    daily_budget_abs: int | None


@dataclass(frozen=True)
class PolicyStatus:
    """Advisory display classification of the vault.

    It mirrors the on-chain gating order for display only. It never blocks or
    permits an on-chain action and may disagree with the chain at the moment a
    transaction is mined.
    """

    tag: PolicyTag
    label: str
    severity: str
    color: str
    unknown_inputs: tuple[str, ...] = ()

    @property
    def advisory(self) -> bool:
        return True

    @property
    def complete(self) -> bool:
        return not self.unknown_inputs
