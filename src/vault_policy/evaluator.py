from __future__ import annotations

from collections.abc import Iterable

from chain_reader.fixed_point import SCALE
from event_log.contracts import LogEvent
from metric_series.contracts import VaultSnapshot
from vault_policy.config import PolicyConfig
from vault_policy.contracts import PolicyInputs, PolicyStatus, PolicyTag

BPS_DENOMINATOR = 10_000

_DISPLAY: dict[PolicyTag, tuple[str, str, str]] = {
    PolicyTag.COOLDOWN: ("Cooldown", "warning", "#f59e0b"),
    PolicyTag.STRESS_SKIP: ("Skip (Stress)", "critical", "#ef4444"),
    PolicyTag.BUDGET_EXHAUSTED: ("Budget exhausted", "critical", "#ef4444"),
    PolicyTag.ACTIVE: ("Active", "ok", "#10b981"),
}


class PolicyStateEvaluator:
    """Classifies vault status for display, first matching rule wins.

    1. ``next_allowed_at > now``: Cooldown
    2. ``stress_ratio_bps > stress_max_bps``: StressSkip
    3. ``daily_budget_abs > 0`` and ``spent_today_abs >= daily_budget_abs``: BudgetExhausted
    4. otherwise: Active

    A rule whose inputs are unknown cannot fire; its inputs are reported in
    ``unknown_inputs`` so the display can show the status as incomplete.
    The result is advisory and is never consulted before an on-chain action.
    """

    def __init__(self, config: PolicyConfig | None = None) -> None:
        self._config = config or PolicyConfig()

    def evaluate(self, inputs: PolicyInputs) -> PolicyStatus:
        unknown: list[str] = []
        if inputs.next_allowed_at is None:
            unknown.append("next_allowed_at")
        elif inputs.next_allowed_at > inputs.now:
            return _status(PolicyTag.COOLDOWN, unknown)

        if inputs.stress_ratio_bps is None or inputs.stress_max_bps is None:
            unknown.extend(
                name
                for name in ("stress_ratio_bps", "stress_max_bps")
                if getattr(inputs, name) is None
            )
        elif inputs.stress_ratio_bps > inputs.stress_max_bps:
            return _status(PolicyTag.STRESS_SKIP, unknown)

        if inputs.spent_today_abs is None or inputs.daily_budget_abs is None:
            unknown.extend(
                name
                for name in ("spent_today_abs", "daily_budget_abs")
                if getattr(inputs, name) is None
            )
        elif inputs.daily_budget_abs > 0 and inputs.spent_today_abs >= inputs.daily_budget_abs:
            return _status(PolicyTag.BUDGET_EXHAUSTED, unknown)

        return _status(PolicyTag.ACTIVE, unknown)

    def evaluate_snapshot(self, snapshot: VaultSnapshot, *, now: int) -> PolicyStatus:
        return self.evaluate(self.inputs_from_snapshot(snapshot, now=now))

    def inputs_from_snapshot(self, snapshot: VaultSnapshot, *, now: int) -> PolicyInputs:
        return PolicyInputs(
            now=now,
            next_allowed_at=snapshot.next_allowed_at,
            stress_ratio_bps=snapshot.stress_ratio_bps,
            stress_max_bps=snapshot.stress_max_bps,
            spent_today_abs=snapshot.spent_today_abs,
            daily_budget_abs=self.daily_budget_abs(snapshot),
        )

    def daily_budget_abs(self, snapshot: VaultSnapshot) -> int | None:
        """Daily budget in 18-decimal stable units.

        Derived from ``daily_budget_bps`` of the vault's stable-equivalent
        value, or the configured fallback when that cannot be resolved.
        """
        value = vault_value_stable_eq(snapshot)
        if snapshot.daily_budget_bps is not None and value is not None:
            return value * snapshot.daily_budget_bps // BPS_DENOMINATOR
        if self._config.fallback_daily_budget is None:
            return None
        return self._config.fallback_daily_budget * SCALE


def vault_value_stable_eq(snapshot: VaultSnapshot) -> int | None:
    if snapshot.stable_balance is None or snapshot.dft_balance is None or snapshot.ema_long is None:
        return None
    return snapshot.stable_balance + snapshot.dft_balance * snapshot.ema_long // SCALE


def budget_usage_pct(spent_today_abs: int | None, daily_budget_abs: int | None) -> float | None:
    if spent_today_abs is None or daily_budget_abs is None or daily_budget_abs <= 0:
        return None
    return 100 * spent_today_abs / daily_budget_abs


def stable_share_pct(snapshot: VaultSnapshot) -> float | None:
    if snapshot.stable_balance is None or snapshot.dft_balance is None:
        return None
    total = snapshot.stable_balance + snapshot.dft_balance
    if total <= 0:
        return None
    return 100 * snapshot.stable_balance / total


def last_vault_action(history: Iterable[LogEvent]) -> LogEvent | None:
    latest: LogEvent | None = None
    for event in history:
        if event.source == "vault":
            latest = event
    return latest


def _status(tag: PolicyTag, unknown: list[str]) -> PolicyStatus:
    label, severity, color = _DISPLAY[tag]
    return PolicyStatus(
        tag=tag, label=label, severity=severity, color=color, unknown_inputs=tuple(unknown)
    )
