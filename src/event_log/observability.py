from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from event_log.contracts import DecodeFailure, PollReport, RangeOutcome


class StructuredLogger(Protocol):
    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None: ...


class MetricsRecorder(Protocol):
    def increment(
        self, name: str, value: int = 1, tags: Mapping[str, str] | None = None
    ) -> None: ...

    def observe(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
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

    def observe(
        self, name: str, value: float, tags: Mapping[str, str] | None = None
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

    def log_poll(self, report: PollReport, *, duration_ms: int) -> None:
        level = logging.INFO if report.complete else logging.WARNING
        self.logger.log(
            level,
            "event_log.poll",
            {
                "head_block": report.head_block,
                "added": report.added,
                "duplicates": report.duplicates,
                "evicted_by_age": report.evicted_by_age,
                "evicted_by_capacity": report.evicted_by_capacity,
                "window_size": report.window_size,
                "failed_ranges": len(report.failed_ranges),
                "decode_failures": len(report.decode_failures),
                "persisted": report.persisted,
                "duration_ms": duration_ms,
            },
        )
        self.metrics.observe("event_log.poll.duration_ms", float(duration_ms))
        self.metrics.gauge("event_log.window.size", float(report.window_size))
        self.metrics.increment("event_log.events.added", report.added)

    def log_poll_skipped(self, *, started_at_ms: int) -> None:
        self.logger.log(
            logging.WARNING, "event_log.poll_skipped", {"started_at_ms": started_at_ms}
        )
        self.metrics.increment("event_log.poll.skipped")

    def log_head_failed(self, *, error_detail: str) -> None:
        self.logger.log(
            logging.WARNING,
            "event_log.head_failed",
            {"error_kind": "transient_fetch", "error_detail": error_detail},
        )

    def log_range_failed(self, outcome: RangeOutcome) -> None:
        self.logger.log(
            logging.WARNING,
            "event_log.range_failed",
            {
                "source": outcome.source,
                "from_block": outcome.block_range.start,
                "to_block": outcome.block_range.end,
                "error_kind": outcome.error_kind,
                "error_detail": outcome.error_detail,
            },
        )
        self.metrics.increment("event_log.range_failures", tags={"source": outcome.source})

    def log_decode_failure(self, failure: DecodeFailure) -> None:
        self.logger.log(
            logging.DEBUG,
            "event_log.decode_failure",
            {
                "source": failure.source,
                "tx_hash": failure.tx_hash,
                "error_kind": failure.error_kind,
                "error_detail": failure.error_detail,
            },
        )
        self.metrics.increment(
            "event_log.decode_failures",
            tags={"source": failure.source, "error_kind": failure.error_kind},
        )

    def log_checkpoint_reset(self, *, source: str, checkpoint: int, head_block: int) -> None:
        self.logger.log(
            logging.INFO,
            "event_log.checkpoint_reset",
            {"source": source, "checkpoint": checkpoint, "head_block": head_block},
        )

    def log_hydrated(self, *, store_key: str, events: int) -> None:
        self.logger.log(
            logging.INFO, "event_log.hydrated", {"store_key": store_key, "events": events}
        )

    def log_hydrate_failed(self, *, store_key: str, error_detail: str) -> None:
        self.logger.log(
            logging.WARNING,
            "event_log.hydrate_failed",
            {
                "store_key": store_key,
                "error_kind": "persistence_failure",
                "error_detail": error_detail,
            },
        )

    def log_persist_failed(self, *, store_key: str, error_detail: str) -> None:
        self.logger.log(
            logging.ERROR,
            "event_log.persist_failed",
            {
                "store_key": store_key,
                "error_kind": "persistence_failure",
                "error_detail": error_detail,
            },
        )
        self.metrics.increment("event_log.persist_failures")
