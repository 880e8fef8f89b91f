from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from chain_reader.contracts import BlockRange

ArgKind = Literal["amount18", "address", "number", "bool", "text"]

ARG_KINDS: tuple[str, ...] = ("amount18", "address", "number", "bool", "text")


@dataclass(frozen=True)
class FormattedArg:
    name: str
    kind: ArgKind
    value: str


@dataclass(frozen=True)
class LogEvent:
    """One decoded contract event, immutable once created."""

    observed_at_ms: int
    source: str
    source_address: str
    event_name: str
    args: tuple[FormattedArg, ...]
    tx_hash: str
    block_number: int | None = None
    log_index: int | None = None
    block_timestamp: int | None = None

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.tx_hash, self.event_name)

    @property
    def label(self) -> str:
        return f"{self.source.capitalize()} {self.event_name}"

    def arg_map(self) -> Mapping[str, str]:
        return {arg.name: arg.value for arg in self.args}


@dataclass(frozen=True)
class RangeOutcome:
    source: str
    block_range: BlockRange
    ok: bool
    log_count: int = 0
    error_kind: str | None = None
    error_detail: str | None = None


@dataclass(frozen=True)
class DecodeFailure:
    source: str
    tx_hash: str
    error_kind: str
    error_detail: str


@dataclass(frozen=True)
class PollReport:
    """Partial-success summary of one indexer tick."""

    started_at_ms: int
    skipped: bool = False
    head_block: int | None = None
    head_error: str | None = None
    ranges: tuple[RangeOutcome, ...] = ()
    decode_failures: tuple[DecodeFailure, ...] = ()
    added: int = 0
    duplicates: int = 0
    evicted_by_age: int = 0
    evicted_by_capacity: int = 0
    window_size: int = 0
    persisted: bool = False
    persist_error: str | None = None
    checkpoints: Mapping[str, int] = field(default_factory=dict)

    @property
    def failed_ranges(self) -> tuple[RangeOutcome, ...]:
        return tuple(outcome for outcome in self.ranges if not outcome.ok)

    @property
    def complete(self) -> bool:
        return (
            not self.skipped
            and self.head_error is None
            and not self.failed_ranges
            and not self.decode_failures
            and self.persist_error is None
        )
