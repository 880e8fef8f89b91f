from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SeriesConfig:
    retention_ms: int = 3_600_000
    interval_ms: int = 10_000
    read_timeout_ms: int = 5_000


def validate_config(config: SeriesConfig) -> None:
    _require_positive(config.retention_ms, "metric_series.retention_ms")
    _require_positive(config.interval_ms, "metric_series.interval_ms")
    _require_positive(config.read_timeout_ms, "metric_series.read_timeout_ms")


def _require_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")
