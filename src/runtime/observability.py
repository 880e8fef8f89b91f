from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from chain_reader.observability import Observability as ChainObservability
from chain_reader.observability import StdlibLogger as ChainStdlibLogger
from event_log.observability import NullMetrics as EventLogNullMetrics
from event_log.observability import Observability as EventLogObservability
from event_log.observability import StdlibLogger as EventLogStdlibLogger
from metric_series.observability import NullMetrics as SeriesNullMetrics
from metric_series.observability import Observability as SeriesObservability
from metric_series.observability import StdlibLogger as SeriesStdlibLogger

LOG_FILE_NAME = "deflat-telemetry.log"


@dataclass(frozen=True)
class RuntimeObservability:
    logger: logging.Logger

    def log_runtime_started(self, *, state_dir: str, subscription_enabled: bool) -> None:
        self.logger.info(
            "runtime.started",
            extra={
                "fields": {
                    "state_dir": state_dir,
                    "subscription_enabled": subscription_enabled,
                }
            },
        )

    def log_tasks_started(self, *, task_names: list[str]) -> None:
        self.logger.info("runtime.tasks_started", extra={"fields": {"tasks": task_names}})

    def log_runtime_stopped(self, *, clean: bool) -> None:
        level = logging.INFO if clean else logging.WARNING
        self.logger.log(level, "runtime.stopped", extra={"fields": {"clean": clean}})


@dataclass(frozen=True)
class ObservabilityBundle:
    runtime: RuntimeObservability
    chain_reader: ChainObservability
    event_log: EventLogObservability
    metric_series: SeriesObservability


class _FieldsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "fields"):
            record.fields = {}
        return True


def bootstrap_observability(*, log_dir: str) -> ObservabilityBundle:
    _setup_logging(log_dir=log_dir)
    return ObservabilityBundle(
        runtime=RuntimeObservability(logger=logging.getLogger("runtime")),
        chain_reader=ChainObservability(
            logger=ChainStdlibLogger(logging.getLogger("chain_reader"))
        ),
        event_log=EventLogObservability(
            logger=EventLogStdlibLogger(logging.getLogger("event_log")),
            metrics=EventLogNullMetrics(),
        ),
        metric_series=SeriesObservability(
            logger=SeriesStdlibLogger(logging.getLogger("metric_series")),
            metrics=SeriesNullMetrics(),
        ),
    )


def _setup_logging(*, log_dir: str) -> None:
    os.makedirs(log_dir, exist_ok=True)
    fields_filter = _FieldsFilter()
    handler = logging.FileHandler(os.path.join(log_dir, LOG_FILE_NAME))
    handler.addFilter(fields_filter)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s | %(fields)s"
    )
    handler.setFormatter(formatter)
    logging.basicConfig(
        level=logging.INFO,
        handlers=[handler],
    )
    logging.getLogger("runtime").setLevel(logging.DEBUG)
    logging.getLogger("chain_reader").setLevel(logging.INFO)
    logging.getLogger("event_log").setLevel(logging.INFO)
    logging.getLogger("metric_series").setLevel(logging.INFO)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
