"""SQLite helpers for the harvester.

This module defines the database path, connection helper and schema
initialisation for the key/value table backing progress state and the
append-only records table used by the SQLite sink.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Optional

from . import config

DB_PATH: Path = config.DB_PATH


def get_connection(path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a SQLite connection to the project database.

    The parent directory is created if missing and ``check_same_thread`` is
    disabled so the HTTP surface can read while a run thread writes. Callers
    must manage concurrency at a higher layer.
    """

    target = Path(path) if path is not None else DB_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(target, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_schema(conn: Optional[sqlite3.Connection] = None) -> None:
    """Create the baseline tables if they do not yet exist.

    Safe to call multiple times; each statement uses ``IF NOT EXISTS``.
    """

    statements: Iterable[str] = (
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key         TEXT PRIMARY KEY,
            value       BLOB NOT NULL,
            updated_at  TEXT NOT NULL
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS records (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            place_id      TEXT NOT NULL,
            title         TEXT,
            payload_json  TEXT NOT NULL,
            emitted_at    TEXT NOT NULL
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_records_place_id
            ON records(place_id);
        """,
    )

    owns_conn = conn is None
    conn = conn or get_connection()
    try:
        with conn:
            for statement in statements:
                conn.execute(statement)
    finally:
        if owns_conn:
            conn.close()


__all__ = ["DB_PATH", "get_connection", "initialize_schema"]
