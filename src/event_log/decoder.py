from __future__ import annotations

from dataclasses import dataclass

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from chain_reader.contracts import RawLog
from event_log.schemas import ArgSpec, EventSchema, SchemaRegistry


@dataclass(frozen=True)
class DecodeFailureDetail:
    error_kind: str
    error_detail: str


class DecodeError(Exception):
    def __init__(self, detail: DecodeFailureDetail) -> None:
        super().__init__(detail.error_detail)
        self.detail = detail


@dataclass(frozen=True)
class DecodedLog:
    schema: EventSchema
    values: tuple[tuple[ArgSpec, object], ...]
    raw: RawLog


def decode_log(registry: SchemaRegistry, raw: RawLog) -> DecodedLog:
    if not raw.topics:
        raise DecodeError(DecodeFailureDetail("unknown_signature", "log has no topics"))
    schema = registry.lookup(raw.address, raw.topics[0])
    if schema is None:
        raise DecodeError(
            DecodeFailureDetail(
                "unknown_signature",
                f"no schema for {raw.address} topic0={raw.topics[0]}",
            )
        )
    indexed = schema.indexed_args
    if len(raw.topics) - 1 != len(indexed):
        raise DecodeError(
            DecodeFailureDetail(
                "topic_count_mismatch",
                f"{schema.name} expects {len(indexed)} indexed topics, got {len(raw.topics) - 1}",
            )
        )
    indexed_values = {
        arg.name: _decode_words([arg.abi_type], topic, schema.name)[0]
        for arg, topic in zip(indexed, raw.topics[1:])
    }
    data_args = schema.data_args
    data_values = _decode_words([arg.abi_type for arg in data_args], raw.data, schema.name)
    by_name = dict(indexed_values)
    by_name.update({arg.name: value for arg, value in zip(data_args, data_values)})
    return DecodedLog(
        schema=schema,
        values=tuple((arg, by_name[arg.name]) for arg in schema.args),
        raw=raw,
    )


def _decode_words(types: list[str], hex_data: str, event_name: str) -> tuple[object, ...]:
    try:
        payload = bytes.fromhex(hex_data[2:] if hex_data.startswith("0x") else hex_data)
    except ValueError as exc:
        raise DecodeError(
            DecodeFailureDetail("malformed_data", f"{event_name}: {exc}")
        ) from exc
    if not types:
        return ()
    try:
        return tuple(abi_decode(types, payload))
    except (DecodingError, ValueError, OverflowError) as exc:
        raise DecodeError(
            DecodeFailureDetail("malformed_data", f"{event_name}: {exc}")
        ) from exc
