"""Durable key to text-blob storage for telemetry state."""

from persistence.codec import (
    BIGINT_MARKER,
    MAX_SAFE_INTEGER,
    PersistenceError,
    build_envelope,
    decode_blob,
    encode_blob,
    read_envelope,
)
from persistence.store import FileStore, InMemoryStore, PersistenceStore

__all__ = [
    "BIGINT_MARKER",
    "MAX_SAFE_INTEGER",
    "PersistenceError",
    "build_envelope",
    "decode_blob",
    "encode_blob",
    "read_envelope",
    "FileStore",
    "InMemoryStore",
    "PersistenceStore",
]
