from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from event_log.contracts import LogEvent

RETENTION_CLOCKS = ("processing", "block")


@dataclass(frozen=True)
class MergeResult:
    added: int
    duplicates: int
    evicted_by_age: int
    evicted_by_capacity: int


class HistoryWindow:
    """Append-ordered events bounded by age and by count.

    Events are unique by ``(tx_hash, event_name)``; the first occurrence wins.
    Age is measured from ``observed_at_ms`` under the ``processing`` clock, or
    from the block timestamp under the ``block`` clock when it is known.
    """

    def __init__(
        self,
        *,
        retention_ms: int,
        capacity: int,
        retention_clock: str = "processing",
        events: Iterable[LogEvent] = (),
    ) -> None:
        if retention_ms <= 0:
            raise ValueError("retention_ms must be > 0")
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if retention_clock not in RETENTION_CLOCKS:
            raise ValueError(f"unknown retention clock: {retention_clock}")
        self.retention_ms = retention_ms
        self.capacity = capacity
        self.retention_clock = retention_clock
        self._events: list[LogEvent] = []
        self._keys: set[tuple[str, str]] = set()
        for event in events:
            self._append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[LogEvent]:
        return iter(tuple(self._events))

    def events(self) -> tuple[LogEvent, ...]:
        return tuple(self._events)

    def contains(self, tx_hash: str, event_name: str) -> bool:
        return (tx_hash, event_name) in self._keys

    def latest(self, source: str | None = None) -> LogEvent | None:
        for event in reversed(self._events):
            if source is None or event.source == source:
                return event
        return None

    def copy(self) -> HistoryWindow:
        return HistoryWindow(
            retention_ms=self.retention_ms,
            capacity=self.capacity,
            retention_clock=self.retention_clock,
            events=self._events,
        )

    def age_reference_ms(self, event: LogEvent) -> int:
        if self.retention_clock == "block" and event.block_timestamp is not None:
            return event.block_timestamp * 1000
        return event.observed_at_ms

    def merge(self, incoming: Iterable[LogEvent], *, now_ms: int) -> MergeResult:
        added = 0
        duplicates = 0
        for event in incoming:
            if self._append(event):
                added += 1
            else:
                duplicates += 1
        evicted_by_age = self.evict_expired(now_ms=now_ms)
        evicted_by_capacity = self._evict_overflow()
        return MergeResult(
            added=added,
            duplicates=duplicates,
            evicted_by_age=evicted_by_age,
            evicted_by_capacity=evicted_by_capacity,
        )

    def evict_expired(self, *, now_ms: int) -> int:
        kept = [
            event
            for event in self._events
            if now_ms - self.age_reference_ms(event) <= self.retention_ms
        ]
        evicted = len(self._events) - len(kept)
        if evicted:
            self._replace(kept)
        return evicted

    def _evict_overflow(self) -> int:
        overflow = len(self._events) - self.capacity
        if overflow <= 0:
            return 0
        self._replace(self._events[overflow:])
        return overflow

    def _append(self, event: LogEvent) -> bool:
        if event.dedup_key in self._keys:
            return False
        self._keys.add(event.dedup_key)
        self._events.append(event)
        return True

    def _replace(self, events: list[LogEvent]) -> None:
        self._events = events
        self._keys = {event.dedup_key for event in events}
