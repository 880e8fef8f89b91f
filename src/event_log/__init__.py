"""Windowed, deduplicated history of pool and vault events."""

from event_log.config import IndexerConfig, validate_config
from event_log.contracts import DecodeFailure, FormattedArg, LogEvent, PollReport, RangeOutcome
from event_log.decoder import DecodeError, DecodeFailureDetail, decode_log
from event_log.indexer import LogWindowIndexer
from event_log.schemas import (
    POOL_SCHEMAS,
    VAULT_SCHEMAS,
    ArgSpec,
    EventSchema,
    SchemaRegistry,
    default_registry,
)
from event_log.window import HistoryWindow

__all__ = [
    "IndexerConfig",
    "validate_config",
    "DecodeFailure",
    "FormattedArg",
    "LogEvent",
    "PollReport",
    "RangeOutcome",
    "DecodeError",
    "DecodeFailureDetail",
    "decode_log",
    "LogWindowIndexer",
    "POOL_SCHEMAS",
    "VAULT_SCHEMAS",
    "ArgSpec",
    "EventSchema",
    "SchemaRegistry",
    "default_registry",
    "HistoryWindow",
]
