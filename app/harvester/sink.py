"""Append-only destinations for finished place records."""

from __future__ import annotations

import json
import os
import sqlite3
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from . import config, db
from .errors import SinkUnavailable
from .models import ExtractedRecord
from .utils import now_iso


class RecordSink(Protocol):
    def append(self, record: ExtractedRecord) -> None:
        ...

    def read_records(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...


class JsonLinesSink:
    """One JSON object per line; every append is flushed and fsynced."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def append(self, record: ExtractedRecord) -> None:
        line = json.dumps(record.to_dict(), ensure_ascii=False, sort_keys=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            raise SinkUnavailable(f"cannot append to {self.path}: {exc}") from exc

    def read_records(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        rows: deque = deque(maxlen=limit if limit and limit > 0 else None)
        with self.path.open("r", encoding="utf-8", errors="ignore") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError:
                    # A torn final line from a crash mid-write.
                    continue
        return list(rows)


class SqliteRecordSink:
    """Inserts records into the ``records`` table."""

    def __init__(self, conn: Optional[sqlite3.Connection] = None) -> None:
        self._conn = conn or db.get_connection()
        db.initialize_schema(self._conn)

    def append(self, record: ExtractedRecord) -> None:
        payload = record.to_dict()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO records (place_id, title, payload_json, emitted_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        record.place_id,
                        record.title,
                        json.dumps(payload, ensure_ascii=False, sort_keys=True),
                        now_iso(),
                    ),
                )
        except sqlite3.Error as exc:
            raise SinkUnavailable(f"cannot insert record {record.place_id!r}: {exc}") from exc

    def read_records(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = "SELECT payload_json FROM records ORDER BY id DESC"
        params: tuple = ()
        if limit and limit > 0:
            query += " LIMIT ?"
            params = (int(limit),)
        rows = self._conn.execute(query, params).fetchall()
        return [json.loads(row["payload_json"]) for row in reversed(rows)]


def build_record_sink(backend: Optional[str] = None) -> RecordSink:
    """Return the configured record sink."""

    name = (backend or config.SINK_BACKEND).strip().lower()
    if name == "sqlite":
        return SqliteRecordSink()
    if name == "jsonl":
        return JsonLinesSink(config.RECORDS_LOG)
    raise ValueError(f"Unknown sink backend: {name!r}")


__all__ = ["RecordSink", "JsonLinesSink", "SqliteRecordSink", "build_record_sink"]
