from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from chain_reader.contracts import ChainReader
from chain_reader.reader import Web3ChainReader
from chain_reader.subscription import LogSubscription
from event_log.indexer import LogWindowIndexer
from event_log.schemas import default_registry
from metric_series.aggregator import SeriesAggregator
from metric_series.groups import POOL_GROUP, VAULT_GROUP
from metric_series.snapshots import SnapshotReader
from persistence.store import FileStore, PersistenceStore
from runtime.config import TelemetryConfig
from runtime.observability import ObservabilityBundle
from runtime.scheduler import PeriodicTask
from runtime.telemetry import TelemetryService
from vault_policy.evaluator import PolicyStateEvaluator


@dataclass
class Runtime:
    config: TelemetryConfig
    service: TelemetryService
    tasks: tuple[PeriodicTask, ...]
    subscription: LogSubscription | None = None
    subscription_thread: threading.Thread | None = None

    def start(self) -> None:
        self.service.hydrate()
        if self.subscription is not None:
            self.subscription.start()
            self.subscription_thread = threading.Thread(
                target=self.subscription.run, name="log-subscription", daemon=True
            )
            self.subscription_thread.start()
        for task in self.tasks:
            task.start()

    def run_once(self) -> None:
        self.service.hydrate()
        for task in self.tasks:
            task.run_once()

    def stop(self) -> bool:
        timeout_ms = self.config.runtime.shutdown_timeout_ms
        clean = True
        if self.subscription is not None:
            self.subscription.stop()
        for task in self.tasks:
            clean = task.stop(timeout_ms=timeout_ms) and clean
        if self.subscription_thread is not None:
            self.subscription_thread.join(timeout=timeout_ms / 1000)
            clean = clean and not self.subscription_thread.is_alive()
        self.service.close()
        return clean


def build_runtime(
    config: TelemetryConfig,
    observability: ObservabilityBundle,
    *,
    reader: ChainReader | None = None,
    store: PersistenceStore | None = None,
    clock_ms: Callable[[], int] | None = None,
) -> Runtime:
    chain = config.chain
    reader = reader or Web3ChainReader(
        rpc_url=chain.rpc_url,
        request_timeout_ms=chain.request_timeout_ms,
        observability=observability.chain_reader,
    )
    store = store or FileStore(config.runtime.state_dir)
    registry = default_registry(
        pool_address=chain.contracts.pool, vault_address=chain.contracts.vault
    )
    indexer = LogWindowIndexer(
        reader=reader,
        registry=registry,
        store=store,
        config=config.event_log,
        observability=observability.event_log,
        clock_ms=clock_ms,
    )
    series_kwargs = dict(
        store=store,
        config=config.metric_series,
        observability=observability.metric_series,
        clock_ms=clock_ms,
    )
    service = TelemetryService(
        indexer=indexer,
        pool_aggregator=SeriesAggregator(group=POOL_GROUP, **series_kwargs),
        vault_aggregator=SeriesAggregator(group=VAULT_GROUP, **series_kwargs),
        snapshot_reader=SnapshotReader(
            reader=reader,
            contracts=chain.contracts,
            read_timeout_ms=config.metric_series.read_timeout_ms,
            observability=observability.metric_series,
            clock_ms=clock_ms,
        ),
        evaluator=PolicyStateEvaluator(config.vault_policy),
        clock_ms=clock_ms,
    )
    tasks = (
        PeriodicTask(
            name="event-log-indexer",
            interval_ms=config.event_log.interval_ms,
            tick=indexer.poll,
        ),
        PeriodicTask(
            name="metric-series-aggregator",
            interval_ms=config.metric_series.interval_ms,
            tick=service.refresh_snapshots,
        ),
    )
    subscription = None
    if chain.subscription is not None:
        subscription = LogSubscription(
            config=chain.subscription,
            addresses=[chain.contracts.pool, chain.contracts.vault],
            on_logs=indexer.enqueue_logs,
            observability=observability.chain_reader,
        )
    return Runtime(config=config, service=service, tasks=tasks, subscription=subscription)
