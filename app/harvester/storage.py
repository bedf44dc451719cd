"""Key/value backings for persisted harvester state.

Each backing stores opaque bytes under a string key and must be durable when
``put`` returns. :class:`~app.harvester.progress.ProgressStore` is the only
caller inside the engine.
"""
from __future__ import annotations

import os
import re
import sqlite3
from pathlib import Path
from typing import Dict, Optional, Protocol

from . import config, db
from .errors import ProgressStoreError
from .utils import now_iso

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]+")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local backing, used by tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """One file per key under *directory*, replaced atomically on write."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe = _SAFE_KEY.sub("_", key).strip("._") or "state"
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ProgressStoreError(f"cannot read {path}: {exc}") from exc

    def put(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("wb") as handle:
                handle.write(value)
                handle.flush()
                os.fsync(handle.fileno())
            tmp_path.replace(path)
        except OSError as exc:
            raise ProgressStoreError(f"cannot write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path_for(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ProgressStoreError(f"cannot delete state for {key!r}: {exc}") from exc


class SqliteKeyValueStore:
    """Backing over the ``kv_store`` table of the harvester database."""

    def __init__(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._conn = conn or db.get_connection()
        db.initialize_schema(self._conn)

    def get(self, key: str) -> Optional[bytes]:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise ProgressStoreError(f"cannot read {key!r}: {exc}") from exc
        if row is None:
            return None
        value = row["value"]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def put(self, key: str, value: bytes) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value), now_iso()),
                )
        except sqlite3.Error as exc:
            raise ProgressStoreError(f"cannot write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise ProgressStoreError(f"cannot delete {key!r}: {exc}") from exc


def build_key_value_store(backend: Optional[str] = None) -> KeyValueStore:
    """Return the configured progress backing."""

    name = (backend or config.PROGRESS_BACKEND).strip().lower()
    if name == "sqlite":
        return SqliteKeyValueStore()
    if name == "json":
        return JsonFileKeyValueStore(config.STATE_DIR)
    raise ValueError(f"Unknown progress backend: {name!r}")


__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "SqliteKeyValueStore",
    "build_key_value_store",
]
