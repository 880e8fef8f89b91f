"""Bounded time series of pool reserves and vault prices."""

from metric_series.aggregator import AppendResult, SeriesAggregator
from metric_series.config import SeriesConfig, validate_config
from metric_series.contracts import (
    PoolSnapshot,
    SeriesPoint,
    StaleDataError,
    VaultSnapshot,
)
from metric_series.groups import POOL_GROUP, VAULT_GROUP, MetricGroup
from metric_series.series import TimeSeries
from metric_series.snapshots import SnapshotReader

__all__ = [
    "AppendResult",
    "SeriesAggregator",
    "SeriesConfig",
    "validate_config",
    "PoolSnapshot",
    "SeriesPoint",
    "StaleDataError",
    "VaultSnapshot",
    "POOL_GROUP",
    "VAULT_GROUP",
    "MetricGroup",
    "TimeSeries",
    "SnapshotReader",
]
