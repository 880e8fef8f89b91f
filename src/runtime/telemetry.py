from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from event_log.contracts import LogEvent
from event_log.indexer import LogWindowIndexer
from metric_series.aggregator import SeriesAggregator
from metric_series.contracts import PoolSnapshot, SeriesPoint, VaultSnapshot
from metric_series.snapshots import SnapshotReader
from vault_policy.contracts import PolicyStatus
from vault_policy.evaluator import (
    PolicyStateEvaluator,
    budget_usage_pct,
    last_vault_action,
    stable_share_pct,
)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TelemetryModel:
    """Read-only view handed to the presentation layer."""

    updated_at_ms: int
    history: tuple[LogEvent, ...]
    pool_series: tuple[SeriesPoint, ...]
    vault_series: tuple[SeriesPoint, ...]
    policy_status: PolicyStatus | None
    latest_vault_snapshot: VaultSnapshot | None
    latest_pool_snapshot: PoolSnapshot | None
    last_vault_action: LogEvent | None
    daily_budget_abs: int | None
    budget_usage_pct: float | None
    stable_share_pct: float | None


class TelemetryService:
    """Owns the snapshot tick and assembles the telemetry model."""

    def __init__(
        self,
        *,
        indexer: LogWindowIndexer,
        pool_aggregator: SeriesAggregator,
        vault_aggregator: SeriesAggregator,
        snapshot_reader: SnapshotReader,
        evaluator: PolicyStateEvaluator,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.indexer = indexer
        self.pool_aggregator = pool_aggregator
        self.vault_aggregator = vault_aggregator
        self._snapshot_reader = snapshot_reader
        self._evaluator = evaluator
        self._clock_ms = clock_ms or _wall_clock_ms
        self._lock = threading.Lock()
        self._vault_snapshot: VaultSnapshot | None = None
        self._pool_snapshot: PoolSnapshot | None = None
        self._policy_status: PolicyStatus | None = None

    def hydrate(self) -> None:
        self.indexer.hydrate()
        self.pool_aggregator.hydrate()
        self.vault_aggregator.hydrate()

    def refresh_snapshots(self) -> None:
        vault_snapshot = self._snapshot_reader.read_vault()
        pool_snapshot = self._snapshot_reader.read_pool()
        self.vault_aggregator.on_snapshot(vault_snapshot)
        self.pool_aggregator.on_snapshot(pool_snapshot)
        status = self._evaluator.evaluate_snapshot(
            vault_snapshot, now=self._clock_ms() // 1000
        )
        with self._lock:
            self._vault_snapshot = vault_snapshot
            self._pool_snapshot = pool_snapshot
            self._policy_status = status

    def model(self) -> TelemetryModel:
        with self._lock:
            vault_snapshot = self._vault_snapshot
            pool_snapshot = self._pool_snapshot
            status = self._policy_status
        history = self.indexer.history()
        daily_budget = (
            self._evaluator.daily_budget_abs(vault_snapshot) if vault_snapshot else None
        )
        return TelemetryModel(
            updated_at_ms=self._clock_ms(),
            history=history,
            pool_series=self.pool_aggregator.points(),
            vault_series=self.vault_aggregator.points(),
            policy_status=status,
            latest_vault_snapshot=vault_snapshot,
            latest_pool_snapshot=pool_snapshot,
            last_vault_action=last_vault_action(history),
            daily_budget_abs=daily_budget,
            budget_usage_pct=budget_usage_pct(
                vault_snapshot.spent_today_abs if vault_snapshot else None, daily_budget
            ),
            stable_share_pct=stable_share_pct(vault_snapshot) if vault_snapshot else None,
        )

    def close(self) -> None:
        self._snapshot_reader.close()
