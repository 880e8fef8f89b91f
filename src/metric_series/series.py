from __future__ import annotations

from collections.abc import Iterable, Iterator

from metric_series.contracts import SeriesPoint


class TimeSeries:
    """Chronological points pruned by age on every append."""

    def __init__(self, *, retention_ms: int, points: Iterable[SeriesPoint] = ()) -> None:
        if retention_ms <= 0:
            raise ValueError("retention_ms must be > 0")
        self.retention_ms = retention_ms
        self._points: list[SeriesPoint] = []
        for point in points:
            self._check_order(point)
            self._points.append(point)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[SeriesPoint]:
        return iter(tuple(self._points))

    def points(self) -> tuple[SeriesPoint, ...]:
        return tuple(self._points)

    def latest(self) -> SeriesPoint | None:
        return self._points[-1] if self._points else None

    def copy(self) -> TimeSeries:
        return TimeSeries(retention_ms=self.retention_ms, points=self._points)

    def append(self, point: SeriesPoint) -> int:
        self._check_order(point)
        self._points.append(point)
        return self.prune(now_ms=point.ts_ms)

    def prune(self, *, now_ms: int) -> int:
        kept = [point for point in self._points if now_ms - point.ts_ms <= self.retention_ms]
        pruned = len(self._points) - len(kept)
        self._points = kept
        return pruned

    def _check_order(self, point: SeriesPoint) -> None:
        if self._points and point.ts_ms < self._points[-1].ts_ms:
            raise ValueError("series points must be appended in time order")
