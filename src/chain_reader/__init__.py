"""Read-only access to pool and vault contracts."""

from chain_reader.config import (
    ChainReaderConfig,
    ContractAddresses,
    RetryPolicy,
    SubscriptionConfig,
    validate_config,
)
from chain_reader.contracts import (
    BlockRange,
    ChainReader,
    RawLog,
    TransientFetchError,
    raw_log_from_rpc,
    to_hex,
)
from chain_reader.observability import NullLogger, Observability, StdlibLogger
from chain_reader.retry import ConnectionState, ConnectionSupervisor, RetrySchedule

__all__ = [
    "ChainReaderConfig",
    "ContractAddresses",
    "RetryPolicy",
    "SubscriptionConfig",
    "validate_config",
    "BlockRange",
    "ChainReader",
    "RawLog",
    "TransientFetchError",
    "raw_log_from_rpc",
    "to_hex",
    "NullLogger",
    "Observability",
    "StdlibLogger",
    "ConnectionState",
    "ConnectionSupervisor",
    "RetrySchedule",
]
