from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from metric_series.contracts import Number, SeriesPoint
from persistence.codec import PersistenceError, build_envelope, encode_blob, read_envelope

SERIES_SCHEMA_VERSION = "1"


def serialize_series(
    points: Sequence[SeriesPoint], *, schema: str, metric_names: Sequence[str]
) -> str:
    envelope = build_envelope(
        schema=schema,
        schema_version=SERIES_SCHEMA_VERSION,
        records=[{"ts_ms": point.ts_ms, "metrics": dict(point.metrics)} for point in points],
        extra={"metric_names": list(metric_names)},
    )
    return encode_blob(envelope)


def deserialize_series(
    blob: str, *, schema: str, metric_names: Sequence[str]
) -> tuple[SeriesPoint, ...]:
    envelope = read_envelope(blob, schema=schema, schema_version=SERIES_SCHEMA_VERSION)
    if envelope.get("metric_names") != list(metric_names):
        raise PersistenceError(f"{schema} metric names do not match")
    points: list[SeriesPoint] = []
    previous_ts: int | None = None
    for record in envelope["records"]:
        point = _point_from_record(record, metric_names)
        if previous_ts is not None and point.ts_ms < previous_ts:
            raise PersistenceError(f"{schema} points are out of order")
        previous_ts = point.ts_ms
        points.append(point)
    return tuple(points)


def _point_from_record(record: Mapping[str, Any], metric_names: Sequence[str]) -> SeriesPoint:
    ts_ms = record.get("ts_ms")
    if isinstance(ts_ms, bool) or not isinstance(ts_ms, int):
        raise PersistenceError("series point ts_ms must be an integer")
    metrics = record.get("metrics")
    if not isinstance(metrics, Mapping) or set(metrics) != set(metric_names):
        raise PersistenceError("series point metrics do not match the group")
    values: dict[str, Number] = {}
    for name in metric_names:
        value = metrics[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PersistenceError(f"series metric {name} must be numeric")
        if isinstance(value, float) and not math.isfinite(value):
            raise PersistenceError(f"series metric {name} must be finite")
        values[name] = value
    return SeriesPoint(ts_ms=ts_ms, metrics=values)
