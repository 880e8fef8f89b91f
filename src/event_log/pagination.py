from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from chain_reader.contracts import BlockRange, RawLog, TransientFetchError
from event_log.contracts import RangeOutcome

FetchRange = Callable[[BlockRange], Sequence[RawLog]]


def split_range(block_range: BlockRange, max_span: int) -> tuple[BlockRange, ...]:
    if max_span <= 0:
        raise ValueError("max_span must be > 0")
    ranges: list[BlockRange] = []
    start = block_range.start
    while start <= block_range.end:
        end = min(start + max_span - 1, block_range.end)
        ranges.append(BlockRange(start=start, end=end))
        start = end + 1
    return tuple(ranges)


@dataclass(frozen=True)
class PaginatedFetch:
    """Logs from every sub-range, concatenated in range order."""

    logs: tuple[RawLog, ...]
    outcomes: tuple[RangeOutcome, ...]

    @property
    def contiguous_end(self) -> int | None:
        """Last block covered by the leading run of successful sub-ranges."""
        end: int | None = None
        for outcome in self.outcomes:
            if not outcome.ok:
                break
            end = outcome.block_range.end
        return end


def fetch_paginated(
    *,
    source: str,
    block_range: BlockRange,
    max_span: int,
    fetch: FetchRange,
    max_concurrent: int = 1,
) -> PaginatedFetch:
    sub_ranges = split_range(block_range, max_span)
    if max_concurrent <= 1 or len(sub_ranges) <= 1:
        results = [_fetch_one(source, sub_range, fetch) for sub_range in sub_ranges]
    else:
        with ThreadPoolExecutor(
            max_workers=min(max_concurrent, len(sub_ranges)),
            thread_name_prefix=f"logs-{source}",
        ) as executor:
            results = list(
                executor.map(lambda sub_range: _fetch_one(source, sub_range, fetch), sub_ranges)
            )
    logs: list[RawLog] = []
    outcomes: list[RangeOutcome] = []
    for range_logs, outcome in results:
        logs.extend(range_logs)
        outcomes.append(outcome)
    return PaginatedFetch(logs=tuple(logs), outcomes=tuple(outcomes))


def _fetch_one(
    source: str, sub_range: BlockRange, fetch: FetchRange
) -> tuple[Sequence[RawLog], RangeOutcome]:
    try:
        range_logs = list(fetch(sub_range))
    except TransientFetchError as exc:
        return (), RangeOutcome(
            source=source,
            block_range=sub_range,
            ok=False,
            error_kind=TransientFetchError.error_kind,
            error_detail=str(exc),
        )
    except ValueError as exc:
        return (), RangeOutcome(
            source=source,
            block_range=sub_range,
            ok=False,
            error_kind="malformed_log",
            error_detail=str(exc),
        )
    return range_logs, RangeOutcome(
        source=source, block_range=sub_range, ok=True, log_count=len(range_logs)
    )
