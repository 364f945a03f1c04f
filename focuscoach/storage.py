from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path
from typing import List, Optional, Sequence

from .models import SessionRecord
from .utils import ensure_directory

HISTORY_KEY = "focus-session-history"


class SqliteBlobStore:
    """Tiny key/value store holding serialized blobs in SQLite."""

    def __init__(self, db_path: Path, key: str = HISTORY_KEY):
        self.db_path = db_path
        self.key = key
        ensure_directory(db_path.parent)
        self._initialize()

    def _initialize(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()

    def load(self) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT value FROM blobs WHERE key = ?", (self.key,)).fetchone()
        return row[0] if row else None

    def save(self, blob: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (self.key, blob),
            )
            conn.commit()


def serialize_history(records: Sequence[SessionRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], ensure_ascii=False)


def deserialize_history(blob: str) -> List[SessionRecord]:
    data = json.loads(blob)
    if not isinstance(data, list):
        raise ValueError("Persisted history is not a list")
    return [SessionRecord.from_dict(item) for item in data]


class HistoryStore:
    """Most-recent-first list of completed sessions, bounded to *limit* entries.

    The in-memory list is authoritative for the process lifetime; storage is
    best-effort in both directions.
    """

    def __init__(self, backend, log, *, limit: int = 50):
        self._backend = backend
        self._logger = log
        self._limit = limit
        self._records: List[SessionRecord] = []
        self._lock = asyncio.Lock()

    @property
    def records(self) -> tuple[SessionRecord, ...]:
        return tuple(self._records)

    @property
    def latest(self) -> Optional[SessionRecord]:
        return self._records[0] if self._records else None

    async def load(self) -> List[SessionRecord]:
        try:
            blob = await asyncio.to_thread(self._backend.load)
            records = deserialize_history(blob) if blob else []
        except Exception as exc:
            self._logger.warning("Could not load session history; starting empty: %s", exc)
            records = []
        self._records = records[: self._limit]
        self._logger.info("Loaded %s sessions from history", len(self._records))
        return list(self._records)

    async def add(self, record: SessionRecord) -> List[SessionRecord]:
        async with self._lock:
            self._records = [record, *self._records][: self._limit]
            snapshot = list(self._records)
            try:
                await asyncio.to_thread(self._backend.save, serialize_history(snapshot))
                self._logger.debug("History persisted (%s sessions)", len(snapshot))
            except Exception as exc:
                self._logger.warning("Could not save session history: %s", exc)
        return snapshot
