"""Advisory vault status classification."""

from vault_policy.config import PolicyConfig, validate_config
from vault_policy.contracts import PolicyInputs, PolicyStatus, PolicyTag
from vault_policy.evaluator import (
    PolicyStateEvaluator,
    budget_usage_pct,
    last_vault_action,
    stable_share_pct,
    vault_value_stable_eq,
)

__all__ = [
    "PolicyConfig",
    "validate_config",
    "PolicyInputs",
    "PolicyStatus",
    "PolicyTag",
    "PolicyStateEvaluator",
    "budget_usage_pct",
    "last_vault_action",
    "stable_share_pct",
    "vault_value_stable_eq",
]
