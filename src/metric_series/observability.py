from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol


class StructuredLogger(Protocol):
    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None: ...


class MetricsRecorder(Protocol):
    def increment(
        self, name: str, value: int = 1, tags: Mapping[str, str] | None = None
    ) -> None: ...

    def gauge(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None: ...


@dataclass(frozen=True)
class StdlibLogger:
    logger: logging.Logger

    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None:
        self.logger.log(level, message, extra={"fields": dict(fields)})


@dataclass(frozen=True)
class NullLogger:
    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None:
        return None


@dataclass(frozen=True)
class NullMetrics:
    def increment(
        self, name: str, value: int = 1, tags: Mapping[str, str] | None = None
    ) -> None:
        return None

    def gauge(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
    ) -> None:
        return None


@dataclass(frozen=True)
class Observability:
    logger: StructuredLogger
    metrics: MetricsRecorder = field(default_factory=NullMetrics)

    def log_read_failed(self, *, field_name: str, error_kind: str, error_detail: str) -> None:
        self.logger.log(
            logging.WARNING,
            "metric_series.read_failed",
            {"field": field_name, "error_kind": error_kind, "error_detail": error_detail},
        )
        self.metrics.increment("metric_series.read_failures", tags={"field": field_name})

    def log_point_appended(self, *, group: str, ts_ms: int, size: int, pruned: int) -> None:
        self.logger.log(
            logging.DEBUG,
            "metric_series.point_appended",
            {"group": group, "ts_ms": ts_ms, "size": size, "pruned": pruned},
        )
        self.metrics.gauge("metric_series.size", float(size), tags={"group": group})

    def log_point_skipped(self, *, group: str, missing: tuple[str, ...]) -> None:
        self.logger.log(
            logging.INFO,
            "metric_series.point_skipped",
            {"group": group, "missing": list(missing)},
        )
        self.metrics.increment("metric_series.points_skipped", tags={"group": group})

    def log_point_out_of_order(self, *, group: str, ts_ms: int, latest_ts_ms: int) -> None:
        self.logger.log(
            logging.WARNING,
            "metric_series.point_out_of_order",
            {"group": group, "ts_ms": ts_ms, "latest_ts_ms": latest_ts_ms},
        )
        self.metrics.increment("metric_series.points_out_of_order", tags={"group": group})

    def log_future_points_dropped(self, *, store_key: str, dropped: int, now_ms: int) -> None:
        self.logger.log(
            logging.WARNING,
            "metric_series.future_points_dropped",
            {"store_key": store_key, "dropped": dropped, "now_ms": now_ms},
        )

    def log_tick_skipped(self, *, group: str) -> None:
        self.logger.log(logging.WARNING, "metric_series.tick_skipped", {"group": group})

    def log_hydrated(self, *, store_key: str, points: int) -> None:
        self.logger.log(
            logging.INFO, "metric_series.hydrated", {"store_key": store_key, "points": points}
        )

    def log_hydrate_failed(self, *, store_key: str, error_detail: str) -> None:
        self.logger.log(
            logging.WARNING,
            "metric_series.hydrate_failed",
            {
                "store_key": store_key,
                "error_kind": "persistence_failure",
                "error_detail": error_detail,
            },
        )

    def log_persist_failed(self, *, store_key: str, error_detail: str) -> None:
        self.logger.log(
            logging.ERROR,
            "metric_series.persist_failed",
            {
                "store_key": store_key,
                "error_kind": "persistence_failure",
                "error_detail": error_detail,
            },
        )
