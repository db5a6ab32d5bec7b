"""SQLite-backed string key/value store.

All cross-event state (access window, admin sessions, panel handles, the track
catalog and daily metrics) lives here. The store offers plain get/put; callers
own their read-modify-write sequences and accept last-writer-wins.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteKeyValueStore:
    """Durable `key -> value` mapping in a single SQLite table."""

    def __init__(self, *, db_path: str | Path, busy_timeout_ms: int = 5000) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout_ms = int(busy_timeout_ms) if int(busy_timeout_ms) > 0 else 5000
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout_ms:d};")
        return conn

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            conn.commit()

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?;", (key,)).fetchone()
        return str(row["value"]) if row is not None else None

    def put(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise ValueError("kv value must be a string.")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_entries(key, value, updated_at)
                VALUES(?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at;
                """,
                (key, value, _utc_now_iso()),
            )
            conn.commit()

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Stored value for `{key}` is not valid JSON.") from exc

    def put_json(self, key: str, value: Any) -> None:
        self.put(key, json.dumps(value, ensure_ascii=False))
