"""Client-local key/value preferences (the selected backend survives restarts)."""

from __future__ import annotations

import os
import sqlite3
import threading

PREFERRED_BACKEND_KEY = "preferred-backend"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_settings (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT DEFAULT (datetime('now'))
);
"""


class PreferenceStore:
    """Small settings table in a local SQLite file. Thread-safe."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()
        with self._lock:
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()

    @classmethod
    def open(cls, path: str) -> "PreferenceStore":
        if path != ":memory:":
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        return cls(sqlite3.connect(path, check_same_thread=False))

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a setting value by key."""
        with self._lock:
            row = self._conn.execute("SELECT value FROM app_settings WHERE key = ?", (key,)).fetchone()
        return row[0] if row else default

    def set(self, key: str, value: str) -> None:
        """Set a setting value (upsert)."""
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO app_settings (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = datetime('now')
                """,
                (key, value),
            )
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()
