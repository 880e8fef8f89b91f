import unittest

from event_log.contracts import LogEvent
from metric_series.contracts import VaultSnapshot
from vault_policy.config import PolicyConfig, validate_config
from vault_policy.contracts import PolicyInputs, PolicyTag
from vault_policy.evaluator import (
    PolicyStateEvaluator,
    budget_usage_pct,
    last_vault_action,
    stable_share_pct,
    vault_value_stable_eq,
)

SCALE = 10**18
NOW = 1_700_000_000


def _inputs(**overrides) -> PolicyInputs:
    values = dict(
        now=NOW,
        next_allowed_at=0,
        stress_ratio_bps=10,
        stress_max_bps=500,
        spent_today_abs=500,
        daily_budget_abs=1000,
    )
    values.update(overrides)
    return PolicyInputs(**values)


def _event(tx_hash: str, source: str) -> LogEvent:
    return LogEvent(
        observed_at_ms=0,
        source=source,
        source_address=f"0x{source}",
        event_name="Rebalanced" if source == "vault" else "Swap",
        args=(),
        tx_hash=tx_hash,
    )


class TestPolicyPrecedence(unittest.TestCase):
    def setUp(self) -> None:
        self.evaluator = PolicyStateEvaluator()

    def test_cooldown(self) -> None:
        status = self.evaluator.evaluate(
            _inputs(next_allowed_at=NOW + 120, stress_ratio_bps=50, spent_today_abs=0)
        )

        self.assertEqual(status.tag, PolicyTag.COOLDOWN)
        self.assertEqual(status.label, "Cooldown")
        self.assertEqual(status.severity, "warning")

    def test_stress_skip(self) -> None:
        status = self.evaluator.evaluate(_inputs(stress_ratio_bps=600))

        self.assertEqual(status.tag, PolicyTag.STRESS_SKIP)
        self.assertEqual(status.label, "Skip (Stress)")

    def test_budget_exhausted(self) -> None:
        status = self.evaluator.evaluate(_inputs(spent_today_abs=1000))

        self.assertEqual(status.tag, PolicyTag.BUDGET_EXHAUSTED)
        self.assertEqual(status.color, "#ef4444")

    def test_active(self) -> None:
        status = self.evaluator.evaluate(_inputs())

        self.assertEqual(status.tag, PolicyTag.ACTIVE)
        self.assertTrue(status.complete)
        self.assertTrue(status.advisory)

    def test_cooldown_wins_over_every_other_rule(self) -> None:
        status = self.evaluator.evaluate(
            _inputs(next_allowed_at=NOW + 1, stress_ratio_bps=900, spent_today_abs=5000)
        )

        self.assertEqual(status.tag, PolicyTag.COOLDOWN)

    def test_stress_wins_over_budget(self) -> None:
        status = self.evaluator.evaluate(_inputs(stress_ratio_bps=501, spent_today_abs=5000))

        self.assertEqual(status.tag, PolicyTag.STRESS_SKIP)

    def test_boundaries_do_not_fire(self) -> None:
        status = self.evaluator.evaluate(
            _inputs(next_allowed_at=NOW, stress_ratio_bps=500, spent_today_abs=999)
        )

        self.assertEqual(status.tag, PolicyTag.ACTIVE)

    def test_zero_budget_never_exhausts(self) -> None:
        status = self.evaluator.evaluate(_inputs(spent_today_abs=0, daily_budget_abs=0))

        self.assertEqual(status.tag, PolicyTag.ACTIVE)

    def test_unknown_inputs_are_reported(self) -> None:
        status = self.evaluator.evaluate(
            _inputs(next_allowed_at=None, stress_max_bps=None, daily_budget_abs=None)
        )

        self.assertEqual(status.tag, PolicyTag.ACTIVE)
        self.assertFalse(status.complete)
        self.assertEqual(
            status.unknown_inputs, ("next_allowed_at", "stress_max_bps", "daily_budget_abs")
        )

    def test_later_rule_can_fire_with_earlier_unknown(self) -> None:
        status = self.evaluator.evaluate(_inputs(next_allowed_at=None, stress_ratio_bps=900))

        self.assertEqual(status.tag, PolicyTag.STRESS_SKIP)
        self.assertEqual(status.unknown_inputs, ("next_allowed_at",))


class TestSnapshotInputs(unittest.TestCase):
    def _snapshot(self, **overrides) -> VaultSnapshot:
        values = dict(
            taken_at_ms=0,
            dft_balance=1_000 * SCALE,
            stable_balance=1_000 * SCALE,
            ema_short=2 * SCALE,
            ema_long=2 * SCALE,
            spent_today_abs=30 * SCALE,
            next_allowed_at=0,
            stress_ratio_bps=10,
            stress_max_bps=500,
            daily_budget_bps=100,
        )
        values.update(overrides)
        return VaultSnapshot(**values)

    def test_vault_value_uses_long_ema(self) -> None:
        self.assertEqual(vault_value_stable_eq(self._snapshot()), 3_000 * SCALE)
        self.assertIsNone(vault_value_stable_eq(self._snapshot(ema_long=None)))

    def test_daily_budget_from_bps(self) -> None:
        evaluator = PolicyStateEvaluator()

        self.assertEqual(evaluator.daily_budget_abs(self._snapshot()), 30 * SCALE)

    def test_daily_budget_falls_back(self) -> None:
        evaluator = PolicyStateEvaluator(PolicyConfig(fallback_daily_budget=10_000))

        self.assertEqual(
            evaluator.daily_budget_abs(self._snapshot(daily_budget_bps=None)), 10_000 * SCALE
        )

    def test_daily_budget_unknown_without_fallback(self) -> None:
        evaluator = PolicyStateEvaluator(PolicyConfig(fallback_daily_budget=None))

        self.assertIsNone(evaluator.daily_budget_abs(self._snapshot(daily_budget_bps=None)))

    def test_snapshot_at_budget_is_exhausted(self) -> None:
        status = PolicyStateEvaluator().evaluate_snapshot(self._snapshot(), now=NOW)

        self.assertEqual(status.tag, PolicyTag.BUDGET_EXHAUSTED)

    def test_usage_and_share(self) -> None:
        self.assertEqual(budget_usage_pct(15 * SCALE, 30 * SCALE), 50.0)
        self.assertIsNone(budget_usage_pct(1, 0))
        self.assertEqual(stable_share_pct(self._snapshot(stable_balance=3_000 * SCALE)), 75.0)
        self.assertIsNone(stable_share_pct(self._snapshot(stable_balance=0, dft_balance=0)))

    def test_last_vault_action(self) -> None:
        history = (_event("0x1", "vault"), _event("0x2", "pool"), _event("0x3", "vault"))

        self.assertEqual(last_vault_action(history).tx_hash, "0x3")
        self.assertIsNone(last_vault_action((_event("0x2", "pool"),)))

    def test_negative_fallback_rejected(self) -> None:
        with self.assertRaises(ValueError):
            validate_config(PolicyConfig(fallback_daily_budget=-1))


if __name__ == "__main__":
    unittest.main()
