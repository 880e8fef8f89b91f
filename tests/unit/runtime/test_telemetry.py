import json
import logging
import unittest

from eth_abi import encode

from chain_reader.contracts import RawLog
from chain_reader.observability import NullLogger as ChainNullLogger
from chain_reader.observability import Observability as ChainObservability
from event_log.observability import NullLogger as EventLogNullLogger
from event_log.observability import Observability as EventLogObservability
from event_log.schemas import POOL_SCHEMAS
from metric_series.observability import NullLogger as SeriesNullLogger
from metric_series.observability import Observability as SeriesObservability
from persistence.store import InMemoryStore
from runtime.config import load_default_config
from runtime.main import model_to_json, parse_args, resolve_config
from runtime.observability import ObservabilityBundle, RuntimeObservability
from runtime.wiring import build_runtime
from vault_policy.contracts import PolicyTag

SCALE = 10**18
POOL = "0xb051c42f15a6a8eda92b9e7d82f1472b4740a509"
SYNC_TOPIC = next(schema for schema in POOL_SCHEMAS if schema.name == "Sync").topic0

VAULT_VALUES = {
    "emaShort": 2 * SCALE,
    "emaLong": 2 * SCALE,
    "spentTodayStableEq": 0,
    "nextAllowedAt": 0,
    "stressRatioBps": 10,
    "stressMaxBps": 500,
    "dailyBudgetBps": 100,
}


class FakeChain:
    def block_number(self) -> int:
        return 50

    def read_value(self, address, function, args=()):
        if function == "balanceOf":
            return 1_000 * SCALE
        return VAULT_VALUES[function]

    def read_tuple(self, address, function, args=()):
        if function == "getReserves":
            return (5 * SCALE, 7 * SCALE)
        return (SCALE, SCALE)

    def get_logs(self, address, topics, block_range):
        if address != POOL:
            return []
        return [
            RawLog(
                address=POOL,
                topics=(SYNC_TOPIC,),
                data="0x" + encode(["uint256", "uint256"], [5 * SCALE, 7 * SCALE]).hex(),
                block_number=40,
                tx_hash="0xsync",
            )
        ]

    def block_timestamp(self, block_hash):
        return 0


def _bundle() -> ObservabilityBundle:
    return ObservabilityBundle(
        runtime=RuntimeObservability(logger=logging.getLogger("runtime.test")),
        chain_reader=ChainObservability(logger=ChainNullLogger()),
        event_log=EventLogObservability(logger=EventLogNullLogger()),
        metric_series=SeriesObservability(logger=SeriesNullLogger()),
    )


class TestTelemetryRuntime(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryStore()
        self.runtime = build_runtime(
            load_default_config(),
            _bundle(),
            reader=FakeChain(),
            store=self.store,
            clock_ms=lambda: 1_700_000_000_000,
        )
        self.addCleanup(self.runtime.stop)

    def test_single_tick_builds_model(self) -> None:
        self.runtime.run_once()
        model = self.runtime.service.model()

        self.assertEqual([event.label for event in model.history], ["Pool Sync"])
        self.assertEqual(len(model.vault_series), 1)
        self.assertEqual(model.vault_series[0].metrics["spot"], 1.0)
        self.assertEqual(model.pool_series[0].metrics["dft_reserve"], 5 * SCALE)
        self.assertEqual(model.policy_status.tag, PolicyTag.ACTIVE)
        self.assertEqual(model.daily_budget_abs, 30 * SCALE)
        self.assertEqual(model.budget_usage_pct, 0.0)
        self.assertEqual(model.stable_share_pct, 50.0)
        self.assertIsNone(model.last_vault_action)
        self.assertEqual(
            set(self.store.keys()), {"event_window", "pool_series", "vault_series"}
        )

    def test_state_survives_rebuild(self) -> None:
        self.runtime.run_once()
        rebuilt = build_runtime(
            load_default_config(),
            _bundle(),
            reader=FakeChain(),
            store=self.store,
            clock_ms=lambda: 1_700_000_001_000,
        )
        self.addCleanup(rebuilt.stop)
        rebuilt.service.hydrate()

        self.assertEqual(len(rebuilt.service.model().history), 1)
        self.assertEqual(len(rebuilt.service.vault_aggregator.points()), 1)

    def test_tasks_and_subscription(self) -> None:
        self.assertEqual(
            [task.name for task in self.runtime.tasks],
            ["event-log-indexer", "metric-series-aggregator"],
        )
        self.assertIsNone(self.runtime.subscription)

    def test_model_serializes_to_json(self) -> None:
        self.runtime.run_once()
        payload = json.loads(model_to_json(self.runtime.service.model()))

        self.assertEqual(payload["policy_status"]["tag"], "Active")
        self.assertEqual(payload["history"][0]["event_name"], "Sync")


class TestCommandLine(unittest.TestCase):
    def test_flags_override_config(self) -> None:
        args = parse_args(
            ["--state-dir", "/tmp/telemetry", "--rpc-url", "http://localhost:8545", "--once"]
        )
        config = resolve_config(args)

        self.assertTrue(args.once)
        self.assertEqual(config.runtime.state_dir, "/tmp/telemetry")
        self.assertEqual(config.runtime.log_dir, "logs")
        self.assertEqual(config.chain.rpc_url, "http://localhost:8545")


if __name__ == "__main__":
    unittest.main()
