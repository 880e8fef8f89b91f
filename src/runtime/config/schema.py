from __future__ import annotations

from dataclasses import dataclass

from chain_reader.config import ChainReaderConfig
from chain_reader.config import validate_config as validate_chain_config
from event_log.config import IndexerConfig
from event_log.config import validate_config as validate_event_log_config
from metric_series.config import SeriesConfig
from metric_series.config import validate_config as validate_series_config
from vault_policy.config import PolicyConfig
from vault_policy.config import validate_config as validate_policy_config


@dataclass(frozen=True)
class RuntimeSettings:
    state_dir: str = "state"
    log_dir: str = "logs"
    shutdown_timeout_ms: int = 5_000


@dataclass(frozen=True)
class TelemetryConfig:
    chain: ChainReaderConfig
    event_log: IndexerConfig
    metric_series: SeriesConfig
    vault_policy: PolicyConfig
    runtime: RuntimeSettings


def validate_config(config: TelemetryConfig) -> None:
    validate_chain_config(config.chain)
    validate_event_log_config(config.event_log)
    validate_series_config(config.metric_series)
    validate_policy_config(config.vault_policy)
    if not config.runtime.state_dir:
        raise ValueError("runtime.state_dir must be set")
    if not config.runtime.log_dir:
        raise ValueError("runtime.log_dir must be set")
    if config.runtime.shutdown_timeout_ms <= 0:
        raise ValueError("runtime.shutdown_timeout_ms must be > 0")
