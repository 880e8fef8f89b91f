from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

BIGINT_MARKER = "__bigint__"
MAX_SAFE_INTEGER = 2**53 - 1


class PersistenceError(RuntimeError):
    """Raised when a stored blob cannot be written, read, or validated."""

    error_kind = "persistence_failure"


def encode_blob(payload: object) -> str:
    try:
        return json.dumps(
            _encode_value(payload),
            sort_keys=True,
            separators=(",", ":"),
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"unencodable payload: {exc}") from exc


def decode_blob(blob: str) -> Any:
    try:
        data = json.loads(blob)
    except (TypeError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"invalid blob: {exc}") from exc
    return _decode_value(data)


def build_envelope(
    *,
    schema: str,
    schema_version: str,
    records: Sequence[Mapping[str, object]],
    extra: Mapping[str, object] | None = None,
) -> dict[str, object]:
    envelope: dict[str, object] = {
        "schema": schema,
        "schema_version": schema_version,
        "records": [dict(record) for record in records],
    }
    if extra:
        for key, value in extra.items():
            if key in envelope:
                raise ValueError(f"reserved envelope key: {key}")
            envelope[key] = value
    return envelope


def read_envelope(blob: str, *, schema: str, schema_version: str) -> Mapping[str, Any]:
    data = decode_blob(blob)
    if not isinstance(data, Mapping):
        raise PersistenceError("envelope must be a mapping")
    if data.get("schema") != schema:
        raise PersistenceError(f"schema mismatch: expected {schema}, got {data.get('schema')!r}")
    if data.get("schema_version") != schema_version:
        raise PersistenceError(
            f"schema_version mismatch: expected {schema_version}, "
            f"got {data.get('schema_version')!r}"
        )
    records = data.get("records")
    if not isinstance(records, list):
        raise PersistenceError("records must be a list")
    for record in records:
        if not isinstance(record, Mapping):
            raise PersistenceError("records must contain mappings")
    return data


def _encode_value(value: object) -> object:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            return {BIGINT_MARKER: str(value)}
        return value
    if isinstance(value, (float, str)):
        return value
    if isinstance(value, Mapping):
        encoded: dict[str, object] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"mapping keys must be strings, got {type(key).__name__}")
            encoded[key] = _encode_value(item)
        return encoded
    if isinstance(value, (list, tuple)):
        return [_encode_value(item) for item in value]
    raise TypeError(f"unsupported value type: {type(value).__name__}")


def _decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {BIGINT_MARKER}:
            return _decode_bigint(value[BIGINT_MARKER])
        return {key: _decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_decode_value(item) for item in value]
    return value


def _decode_bigint(raw: object) -> int:
    if not isinstance(raw, str):
        raise PersistenceError("large integer marker must wrap a decimal string")
    try:
        return int(raw, 10)
    except ValueError as exc:
        raise PersistenceError(f"invalid large integer: {raw!r}") from exc
