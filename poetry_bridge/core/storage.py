from __future__ import annotations

import os
import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from poetry_bridge.core.settings import Settings

# Column names follow the hosted store's snake_case convention. pdf_data has
# no declared type so legacy rows keep whatever they were written as
# (BLOB, base64 TEXT, hex TEXT ...).
SCHEMA_SQL = """
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS poetry_users (
  id TEXT PRIMARY KEY,
  username TEXT NOT NULL,
  email TEXT NOT NULL UNIQUE,
  password_hash TEXT NOT NULL,
  is_admin INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS poems (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  content_english TEXT,
  content_greek TEXT,
  likes INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS comments (
  id TEXT PRIMARY KEY,
  poem_id TEXT NOT NULL REFERENCES poems(id) ON DELETE CASCADE,
  author TEXT NOT NULL,
  text TEXT NOT NULL,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS translations (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  pdf_data,
  content TEXT,
  content_type TEXT DEFAULT 'application/pdf',
  created_at TEXT NOT NULL,
  updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_comments_poem_id ON comments(poem_id);
CREATE INDEX IF NOT EXISTS idx_poems_created_at ON poems(created_at);
CREATE INDEX IF NOT EXISTS idx_translations_created_at ON translations(created_at);
"""

POEM_COLUMNS = ("id", "title", "content_english", "content_greek", "likes", "created_at", "updated_at")
COMMENT_COLUMNS = ("id", "poem_id", "author", "text", "created_at")
TRANSLATION_COLUMNS = ("id", "title", "pdf_data", "content", "content_type", "created_at", "updated_at")
USER_COLUMNS = ("id", "username", "email", "password_hash", "is_admin", "created_at")

_UPDATABLE = {
    "poems": {"title", "content_english", "content_greek", "likes", "updated_at"},
    "translations": {"title", "pdf_data", "content", "content_type", "created_at", "updated_at"},
    "poetry_users": {"username", "is_admin"},
}


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class StoreDB:
    """Structured store with the four tables the direct-store backend exposes.

    One connection is shared across executor threads, so every statement runs
    under a lock.
    """

    conn: sqlite3.Connection
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def init(self) -> None:
        with self._lock:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ==================== Poems ====================

    def list_poems_with_comments(self, poem_id: str | None = None) -> list[dict[str, Any]]:
        """Poems newest first, each with its comments newest first.

        Built from one LEFT JOIN so a poem and its comments are read together.
        """
        where = "WHERE p.id = ?" if poem_id is not None else ""
        params: tuple[Any, ...] = (poem_id,) if poem_id is not None else ()
        with self._lock:
            cur = self.conn.execute(
                f"""
                SELECT p.id, p.title, p.content_english, p.content_greek, p.likes,
                       p.created_at, p.updated_at,
                       c.id AS c_id, c.poem_id AS c_poem_id, c.author AS c_author,
                       c.text AS c_text, c.created_at AS c_created_at
                FROM poems p
                LEFT JOIN comments c ON c.poem_id = p.id
                {where}
                ORDER BY p.created_at DESC, p.id, c.created_at DESC
                """,
                params,
            )
            rows = cur.fetchall()

        poems: dict[str, dict[str, Any]] = {}
        for r in rows:
            poem = poems.get(r["id"])
            if poem is None:
                poem = {col: r[col] for col in POEM_COLUMNS}
                poem["comments"] = []
                poems[r["id"]] = poem
            if r["c_id"] is not None:
                poem["comments"].append(
                    {
                        "id": r["c_id"],
                        "poem_id": r["c_poem_id"],
                        "author": r["c_author"],
                        "text": r["c_text"],
                        "created_at": r["c_created_at"],
                    }
                )
        return list(poems.values())

    def get_poem_row(self, poem_id: str) -> dict[str, Any] | None:
        return self._get("poems", POEM_COLUMNS, poem_id)

    def insert_poem(self, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": new_id(), "likes": 0, "created_at": utcnow_iso(), **values}
        return self._insert("poems", row)

    def update_poem(self, poem_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        return self._update("poems", POEM_COLUMNS, poem_id, {**values, "updated_at": utcnow_iso()})

    def delete_poem(self, poem_id: str) -> bool:
        return self._delete("poems", poem_id)

    def increment_likes(self, poem_id: str) -> int | None:
        with self._lock:
            cur = self.conn.execute(
                "UPDATE poems SET likes = COALESCE(likes, 0) + 1 WHERE id = ?",
                (poem_id,),
            )
            if cur.rowcount == 0:
                self.conn.rollback()
                return None
            likes = self.conn.execute("SELECT likes FROM poems WHERE id = ?", (poem_id,)).fetchone()[0]
            self.conn.commit()
        return likes

    # ==================== Comments ====================

    def insert_comment(self, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": new_id(), "created_at": utcnow_iso(), **values}
        return self._insert("comments", row)

    def get_comment_row(self, comment_id: str) -> dict[str, Any] | None:
        return self._get("comments", COMMENT_COLUMNS, comment_id)

    def delete_comment(self, comment_id: str) -> bool:
        return self._delete("comments", comment_id)

    # ==================== Translations ====================

    def list_translation_rows(self) -> list[dict[str, Any]]:
        """Translation listing without payload columns, newest first."""
        with self._lock:
            cur = self.conn.execute(
                "SELECT id, title, created_at FROM translations ORDER BY created_at DESC"
            )
            return [dict(r) for r in cur.fetchall()]

    def get_translation_row(self, translation_id: str) -> dict[str, Any] | None:
        return self._get("translations", TRANSLATION_COLUMNS, translation_id)

    def insert_translation(self, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": new_id(), "created_at": utcnow_iso(), **values}
        return self._insert("translations", row)

    def update_translation(self, translation_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        return self._update(
            "translations", TRANSLATION_COLUMNS, translation_id, {**values, "updated_at": utcnow_iso()}
        )

    def delete_translation(self, translation_id: str) -> bool:
        return self._delete("translations", translation_id)

    # ==================== Users ====================

    def list_user_rows(self) -> list[dict[str, Any]]:
        with self._lock:
            cur = self.conn.execute(
                f"SELECT {', '.join(USER_COLUMNS)} FROM poetry_users ORDER BY created_at DESC"
            )
            return [dict(r) for r in cur.fetchall()]

    def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        with self._lock:
            cur = self.conn.execute(
                f"SELECT {', '.join(USER_COLUMNS)} FROM poetry_users WHERE lower(email) = lower(?)",
                (email,),
            )
            row = cur.fetchone()
        return dict(row) if row else None

    def insert_user(self, values: dict[str, Any]) -> dict[str, Any]:
        row = {"id": new_id(), "is_admin": 0, "created_at": utcnow_iso(), **values}
        return self._insert("poetry_users", row)

    def set_user_admin(self, user_id: str, is_admin: bool) -> bool:
        return self._update("poetry_users", USER_COLUMNS, user_id, {"is_admin": int(is_admin)}) is not None

    def delete_user(self, user_id: str) -> bool:
        return self._delete("poetry_users", user_id)

    # ==================== Helpers ====================

    def _get(self, table: str, columns: tuple[str, ...], row_id: str) -> dict[str, Any] | None:
        with self._lock:
            cur = self.conn.execute(
                f"SELECT {', '.join(columns)} FROM {table} WHERE id = ?",
                (row_id,),
            )
            row = cur.fetchone()
        return dict(row) if row else None

    def _insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        cols = list(row)
        with self._lock:
            try:
                self.conn.execute(
                    f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
                    tuple(row[c] for c in cols),
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise
        return row

    def _update(
        self, table: str, columns: tuple[str, ...], row_id: str, values: dict[str, Any]
    ) -> dict[str, Any] | None:
        unknown = set(values) - _UPDATABLE[table]
        if unknown:
            raise ValueError(f"Cannot update {table} columns: {sorted(unknown)}")
        assignments = ", ".join(f"{col} = ?" for col in values)
        with self._lock:
            try:
                cur = self.conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?",
                    (*values.values(), row_id),
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise
            if cur.rowcount == 0:
                return None
        return self._get(table, columns, row_id)

    def _delete(self, table: str, row_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
            self.conn.commit()
        return cur.rowcount > 0


def connect_store(path: str) -> StoreDB:
    """Open (and create if needed) a store at ``path``; ``:memory:`` works for tests."""
    if path != ":memory:":
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    store = StoreDB(conn=conn)
    store.init()
    return store


_store: StoreDB | None = None


def init_store(settings: Settings | None = None) -> StoreDB | None:
    """Open the configured store, or return None while it is not configured."""
    global _store
    s = settings or Settings.from_env()
    if not s.direct_store_ready:
        _store = None
        return None
    _store = connect_store(s.store_path)
    return _store


def get_store() -> StoreDB:
    assert _store is not None, "Store not initialized"
    return _store
