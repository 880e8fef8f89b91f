from __future__ import annotations

from dataclasses import dataclass, field

from event_log.window import RETENTION_CLOCKS


@dataclass(frozen=True)
class IndexerConfig:
    retention_ms: int = 3_600_000
    capacity: int = 300
    interval_ms: int = 10_000
    lookback_blocks: int = 300
    max_block_span: int = 100
    max_concurrent_ranges: int = 1
    max_catchup_blocks: int = 2_000
    retention_clock: str = "processing"
    amount_places: int = 4
    store_key: str = "event_window"
    symbols: dict[str, str] = field(default_factory=lambda: {"dft": "DFT", "stable": "STABLE"})


def validate_config(config: IndexerConfig) -> None:
    _require_positive(config.retention_ms, "event_log.retention_ms")
    _require_positive(config.capacity, "event_log.capacity")
    _require_positive(config.interval_ms, "event_log.interval_ms")
    _require_positive(config.lookback_blocks, "event_log.lookback_blocks")
    _require_positive(config.max_block_span, "event_log.max_block_span")
    _require_positive(config.max_concurrent_ranges, "event_log.max_concurrent_ranges")
    _require_positive(config.max_catchup_blocks, "event_log.max_catchup_blocks")
    if config.max_catchup_blocks < config.lookback_blocks:
        raise ValueError("event_log.max_catchup_blocks must be >= lookback_blocks")
    if config.retention_clock not in RETENTION_CLOCKS:
        raise ValueError(f"event_log.retention_clock must be one of {RETENTION_CLOCKS}")
    if config.amount_places < 0:
        raise ValueError("event_log.amount_places must be >= 0")
    if not config.store_key:
        raise ValueError("event_log.store_key must be set")
    for role in ("dft", "stable"):
        if not config.symbols.get(role):
            raise ValueError(f"event_log.symbols.{role} must be set")


def _require_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")
