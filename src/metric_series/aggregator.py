from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from metric_series.config import SeriesConfig
from metric_series.contracts import SeriesPoint
from metric_series.groups import MetricGroup
from metric_series.observability import NullLogger, Observability
from metric_series.serialization import deserialize_series, serialize_series
from metric_series.series import TimeSeries
from persistence.codec import PersistenceError
from persistence.store import PersistenceStore


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AppendResult:
    appended: bool
    skipped_tick: bool = False
    out_of_order: bool = False
    missing: tuple[str, ...] = ()
    pruned: int = 0
    persisted: bool = False
    point: SeriesPoint | None = None


class SeriesAggregator:
    """Bounded time series for one metric group.

    A point is appended only when every required input is resolved and every
    derived value is defined. Append and persist are applied together: when
    the store rejects the candidate series, the in-memory series is unchanged.
    """

    def __init__(
        self,
        *,
        group: MetricGroup,
        store: PersistenceStore,
        config: SeriesConfig | None = None,
        observability: Observability | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._group = group
        self._store = store
        self._config = config or SeriesConfig()
        self._observability = observability or Observability(logger=NullLogger())
        self._clock_ms = clock_ms or _wall_clock_ms
        self._series = TimeSeries(retention_ms=self._config.retention_ms)
        self._in_flight = threading.Lock()

    @property
    def group(self) -> MetricGroup:
        return self._group

    @property
    def series(self) -> TimeSeries:
        return self._series

    def points(self) -> tuple[SeriesPoint, ...]:
        return self._series.points()

    def hydrate(self) -> int:
        store_key = self._group.store_key
        try:
            blob = self._store.get(store_key)
            if blob is None:
                return 0
            points = deserialize_series(
                blob, schema=store_key, metric_names=self._group.metric_names
            )
        except PersistenceError as exc:
            self._observability.log_hydrate_failed(store_key=store_key, error_detail=str(exc))
            self._series = TimeSeries(retention_ms=self._config.retention_ms)
            return 0
        now_ms = self._clock_ms()
        future = [point for point in points if point.ts_ms > now_ms]
        if future:
            self._observability.log_future_points_dropped(
                store_key=store_key, dropped=len(future), now_ms=now_ms
            )
        series = TimeSeries(
            retention_ms=self._config.retention_ms,
            points=[point for point in points if point.ts_ms <= now_ms],
        )
        series.prune(now_ms=now_ms)
        self._series = series
        self._observability.log_hydrated(store_key=store_key, points=len(series))
        return len(series)

    def on_snapshot(self, snapshot: object) -> AppendResult:
        if not self._in_flight.acquire(blocking=False):
            self._observability.log_tick_skipped(group=self._group.key)
            return AppendResult(appended=False, skipped_tick=True)
        try:
            return self._append(snapshot)
        finally:
            self._in_flight.release()

    def prune(self) -> int:
        return self._series.prune(now_ms=self._clock_ms())

    def _append(self, snapshot: object) -> AppendResult:
        metrics, missing = self._group.compute(snapshot)
        if metrics is None:
            self._observability.log_point_skipped(group=self._group.key, missing=missing)
            return AppendResult(appended=False, missing=missing)
        point = SeriesPoint(ts_ms=self._clock_ms(), metrics=metrics)
        latest = self._series.latest()
        if latest is not None and point.ts_ms < latest.ts_ms:
            self._observability.log_point_out_of_order(
                group=self._group.key, ts_ms=point.ts_ms, latest_ts_ms=latest.ts_ms
            )
            return AppendResult(appended=False, out_of_order=True, point=point)
        candidate = self._series.copy()
        pruned = candidate.append(point)
        try:
            self._store.set(
                self._group.store_key,
                serialize_series(
                    candidate.points(),
                    schema=self._group.store_key,
                    metric_names=self._group.metric_names,
                ),
            )
        except PersistenceError as exc:
            self._observability.log_persist_failed(
                store_key=self._group.store_key, error_detail=str(exc)
            )
            return AppendResult(appended=False, point=point)
        self._series = candidate
        self._observability.log_point_appended(
            group=self._group.key, ts_ms=point.ts_ms, size=len(candidate), pruned=pruned
        )
        return AppendResult(appended=True, pruned=pruned, persisted=True, point=point)
