from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from event_log.contracts import ARG_KINDS, FormattedArg, LogEvent
from persistence.codec import PersistenceError, build_envelope, encode_blob, read_envelope

EVENT_WINDOW_SCHEMA = "event_window"
EVENT_WINDOW_SCHEMA_VERSION = "1"


@dataclass(frozen=True)
class HydratedWindow:
    events: tuple[LogEvent, ...]
    checkpoints: Mapping[str, int]


def serialize_window(events: Sequence[LogEvent], checkpoints: Mapping[str, int]) -> str:
    envelope = build_envelope(
        schema=EVENT_WINDOW_SCHEMA,
        schema_version=EVENT_WINDOW_SCHEMA_VERSION,
        records=[_event_record(event) for event in events],
        extra={"checkpoints": dict(checkpoints)},
    )
    return encode_blob(envelope)


def deserialize_window(blob: str) -> HydratedWindow:
    envelope = read_envelope(
        blob, schema=EVENT_WINDOW_SCHEMA, schema_version=EVENT_WINDOW_SCHEMA_VERSION
    )
    events = tuple(_event_from_record(record) for record in envelope["records"])
    seen: set[tuple[str, str]] = set()
    for event in events:
        if event.dedup_key in seen:
            raise PersistenceError(f"duplicate event in stored window: {event.dedup_key}")
        seen.add(event.dedup_key)
    return HydratedWindow(events=events, checkpoints=_checkpoints(envelope.get("checkpoints")))


def _event_record(event: LogEvent) -> dict[str, object]:
    return {
        "observed_at_ms": event.observed_at_ms,
        "source": event.source,
        "source_address": event.source_address,
        "event_name": event.event_name,
        "args": [[arg.name, arg.kind, arg.value] for arg in event.args],
        "tx_hash": event.tx_hash,
        "block_number": event.block_number,
        "log_index": event.log_index,
        "block_timestamp": event.block_timestamp,
    }


def _event_from_record(record: Mapping[str, Any]) -> LogEvent:
    args_payload = record.get("args")
    if not isinstance(args_payload, list):
        raise PersistenceError("event args must be a list")
    args: list[FormattedArg] = []
    for item in args_payload:
        if (
            not isinstance(item, list)
            or len(item) != 3
            or not all(isinstance(part, str) for part in item)
        ):
            raise PersistenceError("event arg must be a [name, kind, value] triple")
        if item[1] not in ARG_KINDS:
            raise PersistenceError(f"unknown argument kind: {item[1]!r}")
        args.append(FormattedArg(name=item[0], kind=item[1], value=item[2]))
    return LogEvent(
        observed_at_ms=_require_int(record, "observed_at_ms"),
        source=_require_str(record, "source"),
        source_address=_require_str(record, "source_address"),
        event_name=_require_str(record, "event_name"),
        args=tuple(args),
        tx_hash=_require_str(record, "tx_hash"),
        block_number=_optional_int(record, "block_number"),
        log_index=_optional_int(record, "log_index"),
        block_timestamp=_optional_int(record, "block_timestamp"),
    )


def _checkpoints(payload: object) -> dict[str, int]:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise PersistenceError("checkpoints must be a mapping")
    checkpoints: dict[str, int] = {}
    for key, value in payload.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise PersistenceError(f"invalid checkpoint for {key}")
        checkpoints[str(key)] = value
    return checkpoints


def _require_str(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value:
        raise PersistenceError(f"event {key} must be a non-empty string")
    return value


def _require_int(record: Mapping[str, Any], key: str) -> int:
    value = record.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise PersistenceError(f"event {key} must be an integer")
    return value


def _optional_int(record: Mapping[str, Any], key: str) -> int | None:
    if record.get(key) is None:
        return None
    return _require_int(record, key)
