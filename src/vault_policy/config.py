from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PolicyConfig:
    # whole stable units, used when the vault budget cannot be derived
    fallback_daily_budget: int | None = 10_000


def validate_config(config: PolicyConfig) -> None:
    if config.fallback_daily_budget is not None and config.fallback_daily_budget < 0:
        raise ValueError("vault_policy.fallback_daily_budget must be >= 0")
