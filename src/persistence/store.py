from __future__ import annotations

import os
import re
import tempfile
import threading
from typing import Protocol

from persistence.codec import PersistenceError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class PersistenceStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, blob: str) -> None: ...


class InMemoryStore:
    def __init__(self, blobs: dict[str, str] | None = None) -> None:
        self._blobs: dict[str, str] = dict(blobs or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._blobs.get(key)

    def set(self, key: str, blob: str) -> None:
        with self._lock:
            self._blobs[key] = blob

    def keys(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._blobs))


class FileStore:
    """One file per key under ``root``; writes replace the file atomically."""

    def __init__(self, root: str) -> None:
        self._root = root
        self._lock = threading.Lock()

    @property
    def root(self) -> str:
        return self._root

    def path_for(self, key: str) -> str:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"invalid store key: {key!r}")
        return os.path.join(self._root, f"{key}.json")

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        try:
            with open(path, encoding="utf-8") as handle:
                return handle.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"read failed for {key}: {exc}") from exc

    def set(self, key: str, blob: str) -> None:
        path = self.path_for(key)
        with self._lock:
            try:
                self._write_atomic(path, blob)
            except OSError as exc:
                raise PersistenceError(f"write failed for {key}: {exc}") from exc

    def _write_atomic(self, path: str, blob: str) -> None:
        os.makedirs(self._root, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=".store_", dir=self._root)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
            _fsync_directory(self._root)
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)


def _fsync_directory(path: str) -> None:
    if not hasattr(os, "O_DIRECTORY"):
        return
    dir_fd = os.open(path, os.O_DIRECTORY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)
