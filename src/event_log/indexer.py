from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

from chain_reader.contracts import BlockRange, ChainReader, RawLog, TransientFetchError
from event_log.config import IndexerConfig
from event_log.contracts import DecodeFailure, LogEvent, PollReport, RangeOutcome
from event_log.decoder import DecodeError, decode_log
from event_log.formatting import format_args
from event_log.observability import NullLogger, Observability
from event_log.pagination import PaginatedFetch, fetch_paginated
from event_log.schemas import SchemaRegistry
from event_log.serialization import deserialize_window, serialize_window
from event_log.window import HistoryWindow
from persistence.codec import PersistenceError
from persistence.store import PersistenceStore


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class LogWindowIndexer:
    """Windowed, deduplicated and persisted history of contract events.

    Each tick reads the chain head, fetches every source contract from its
    checkpoint in sub-ranges of at most ``max_block_span`` blocks, decodes and
    formats the logs, and merges them into a copy of the window. The copy and
    the advanced checkpoints are committed only after the store accepted them,
    so a tick is either fully applied or not at all.
    """

    def __init__(
        self,
        *,
        reader: ChainReader,
        registry: SchemaRegistry,
        store: PersistenceStore,
        config: IndexerConfig | None = None,
        observability: Observability | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._reader = reader
        self._registry = registry
        self._store = store
        self._config = config or IndexerConfig()
        self._observability = observability or Observability(logger=NullLogger())
        self._clock_ms = clock_ms or _wall_clock_ms
        self._window = self._empty_window()
        self._checkpoints: dict[str, int] = {}
        self._in_flight = threading.Lock()
        self._pending_lock = threading.Lock()
        self._pending: list[RawLog] = []

    @property
    def config(self) -> IndexerConfig:
        return self._config

    @property
    def window(self) -> HistoryWindow:
        return self._window

    def history(self) -> tuple[LogEvent, ...]:
        return self._window.events()

    def checkpoints(self) -> Mapping[str, int]:
        return dict(self._checkpoints)

    def hydrate(self) -> int:
        store_key = self._config.store_key
        try:
            blob = self._store.get(store_key)
            if blob is None:
                return 0
            hydrated = deserialize_window(blob)
        except PersistenceError as exc:
            self._observability.log_hydrate_failed(store_key=store_key, error_detail=str(exc))
            self._window = self._empty_window()
            self._checkpoints = {}
            return 0
        window = self._empty_window()
        window.merge(hydrated.events, now_ms=self._clock_ms())
        self._window = window
        self._checkpoints = dict(hydrated.checkpoints)
        self._observability.log_hydrated(store_key=store_key, events=len(window))
        return len(window)

    def enqueue_logs(self, logs: Iterable[RawLog]) -> None:
        with self._pending_lock:
            self._pending.extend(logs)

    def poll(self) -> PollReport:
        started_at_ms = self._clock_ms()
        if not self._in_flight.acquire(blocking=False):
            self._observability.log_poll_skipped(started_at_ms=started_at_ms)
            return PollReport(started_at_ms=started_at_ms, skipped=True)
        try:
            report = self._poll_once(started_at_ms)
        finally:
            self._in_flight.release()
        self._observability.log_poll(
            report, duration_ms=max(0, self._clock_ms() - started_at_ms)
        )
        return report

    def _poll_once(self, started_at_ms: int) -> PollReport:
        pending = self._drain_pending()
        head_block: int | None = None
        head_error: str | None = None
        try:
            head_block = self._reader.block_number()
        except TransientFetchError as exc:
            head_error = str(exc)
            self._observability.log_head_failed(error_detail=head_error)

        checkpoints = dict(self._checkpoints)
        outcomes: list[RangeOutcome] = []
        raw_logs: list[RawLog] = []
        if head_block is not None:
            for address, fetched in self._fetch_sources(head_block, checkpoints):
                raw_logs.extend(fetched.logs)
                outcomes.extend(fetched.outcomes)
                contiguous_end = fetched.contiguous_end
                if contiguous_end is not None:
                    checkpoints[address] = contiguous_end
        for outcome in outcomes:
            if not outcome.ok:
                self._observability.log_range_failed(outcome)
        raw_logs.extend(pending)

        now_ms = self._clock_ms()
        events, failures = self._decode_all(raw_logs, observed_at_ms=now_ms)
        for failure in failures:
            self._observability.log_decode_failure(failure)

        candidate = self._window.copy()
        merge = candidate.merge(events, now_ms=now_ms)
        persist_error: str | None = None
        try:
            self._store.set(
                self._config.store_key, serialize_window(candidate.events(), checkpoints)
            )
        except PersistenceError as exc:
            persist_error = str(exc)
            self._observability.log_persist_failed(
                store_key=self._config.store_key, error_detail=persist_error
            )
            # pushed logs are not refetched by range; keep them for the next tick
            self.enqueue_logs(pending)
        else:
            self._window = candidate
            self._checkpoints = checkpoints

        return PollReport(
            started_at_ms=started_at_ms,
            head_block=head_block,
            head_error=head_error,
            ranges=tuple(outcomes),
            decode_failures=tuple(failures),
            added=merge.added if persist_error is None else 0,
            duplicates=merge.duplicates,
            evicted_by_age=merge.evicted_by_age if persist_error is None else 0,
            evicted_by_capacity=merge.evicted_by_capacity if persist_error is None else 0,
            window_size=len(self._window),
            persisted=persist_error is None,
            persist_error=persist_error,
            checkpoints=dict(self._checkpoints),
        )

    def _drain_pending(self) -> list[RawLog]:
        with self._pending_lock:
            pending = self._pending
            self._pending = []
        return pending

    def _fetch_sources(
        self, head_block: int, checkpoints: Mapping[str, int]
    ) -> list[tuple[str, PaginatedFetch]]:
        plans: list[tuple[str, str, BlockRange]] = []
        for address, source in self._registry.sources().items():
            block_range = self._range_for(address, source, head_block, checkpoints.get(address))
            if block_range is not None:
                plans.append((address, source, block_range))
        if not plans:
            return []
        with ThreadPoolExecutor(
            max_workers=len(plans), thread_name_prefix="event-log-source"
        ) as executor:
            futures = [
                (address, executor.submit(self._fetch_source, address, source, block_range))
                for address, source, block_range in plans
            ]
            return [(address, future.result()) for address, future in futures]

    def _range_for(
        self, address: str, source: str, head_block: int, checkpoint: int | None
    ) -> BlockRange | None:
        cold_start = max(0, head_block - self._config.lookback_blocks + 1)
        if checkpoint is None:
            return BlockRange(start=cold_start, end=head_block)
        if checkpoint >= head_block:
            return None
        if head_block - checkpoint > self._config.max_catchup_blocks:
            self._observability.log_checkpoint_reset(
                source=source, checkpoint=checkpoint, head_block=head_block
            )
            return BlockRange(start=cold_start, end=head_block)
        return BlockRange(start=checkpoint + 1, end=head_block)

    def _fetch_source(self, address: str, source: str, block_range: BlockRange) -> PaginatedFetch:
        topics = self._registry.topics_for(address)
        return fetch_paginated(
            source=source,
            block_range=block_range,
            max_span=self._config.max_block_span,
            fetch=lambda sub_range: self._reader.get_logs(address, topics, sub_range),
            max_concurrent=self._config.max_concurrent_ranges,
        )

    def _decode_all(
        self, raw_logs: Sequence[RawLog], *, observed_at_ms: int
    ) -> tuple[list[LogEvent], list[DecodeFailure]]:
        sources = self._registry.sources()
        timestamps: dict[str, int | None] = {}
        events: list[LogEvent] = []
        failures: list[DecodeFailure] = []
        for raw in raw_logs:
            if raw.removed:
                continue
            source = sources.get(raw.address, raw.address)
            try:
                decoded = decode_log(self._registry, raw)
                args = format_args(
                    decoded, symbols=self._config.symbols, places=self._config.amount_places
                )
            except DecodeError as exc:
                failures.append(
                    DecodeFailure(
                        source=source,
                        tx_hash=raw.tx_hash,
                        error_kind=exc.detail.error_kind,
                        error_detail=exc.detail.error_detail,
                    )
                )
                continue
            except (ValueError, ArithmeticError) as exc:
                failures.append(
                    DecodeFailure(
                        source=source,
                        tx_hash=raw.tx_hash,
                        error_kind="format_error",
                        error_detail=str(exc),
                    )
                )
                continue
            events.append(
                LogEvent(
                    observed_at_ms=observed_at_ms,
                    source=decoded.schema.source,
                    source_address=raw.address,
                    event_name=decoded.schema.name,
                    args=args,
                    tx_hash=raw.tx_hash,
                    block_number=raw.block_number,
                    log_index=raw.log_index,
                    block_timestamp=self._block_timestamp(raw, timestamps),
                )
            )
        return events, failures

    def _block_timestamp(self, raw: RawLog, cache: dict[str, int | None]) -> int | None:
        if self._config.retention_clock != "block" or raw.block_hash is None:
            return None
        if raw.block_hash not in cache:
            try:
                cache[raw.block_hash] = self._reader.block_timestamp(raw.block_hash)
            except TransientFetchError:
                cache[raw.block_hash] = None
        return cache[raw.block_hash]

    def _empty_window(self) -> HistoryWindow:
        return HistoryWindow(
            retention_ms=self._config.retention_ms,
            capacity=self._config.capacity,
            retention_clock=self._config.retention_clock,
        )
