"""Adapter for the hosted structured store (snake_case rows, legacy payloads).

Rows are read with structured queries and renamed through the ``STORE_*``
field maps. The ``pdf_data`` column was written by several historical code
paths, so every stored document goes through :func:`normalize_payload`
before a caller sees it.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from functools import partial
from typing import Any, Callable, TypeVar

from poetry_bridge.core.credentials import hash_password, issue_token, verify_password
from poetry_bridge.core.errors import (
    INVALID_CREDENTIALS,
    BackendUnreachableError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from poetry_bridge.core.payload import normalize_payload
from poetry_bridge.core.storage import StoreDB
from poetry_bridge.providers.base import BackendAdapter
from poetry_bridge.providers.content_types import (
    DEFAULT_CONTENT_TYPE,
    AuthSession,
    Comment,
    Poem,
    PoemDraft,
    Translation,
    TranslationSummary,
    TranslationUpload,
    User,
    parse_timestamp,
)
from poetry_bridge.providers.mapping import (
    STORE_COMMENT,
    STORE_POEM,
    STORE_TRANSLATION,
    STORE_USER,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DirectStoreAdapter(BackendAdapter):
    """Reads and writes the four store tables directly."""

    def __init__(self, store: StoreDB, *, token_secret: str) -> None:
        if not token_secret:
            raise ValueError("A token secret is required to issue sign-in tokens")
        self._store = store
        self._token_secret = token_secret

    @property
    def name(self) -> str:
        return "direct_store"

    async def _run(self, what: str, fn: Callable[..., T], *args: Any) -> T:
        """Run a store call in the default executor and tag its failures."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args))
        except sqlite3.IntegrityError as e:
            logger.warning(f"direct_store: integrity error on {what}: {e}")
            raise ValidationFailedError(f"Store rejected {what}: {e}", backend=self.name) from e
        except sqlite3.Error as e:
            logger.error(f"direct_store: {what} failed: {e}")
            raise BackendUnreachableError(f"Store query for {what} failed ({e})", backend=self.name) from e

    # ---- mapping ----

    def _to_comment(self, row: dict[str, Any]) -> Comment:
        values = STORE_COMMENT.to_canonical(row)
        return Comment(
            id=values["id"],
            poem_id=values.get("poem_id") or "",
            author=values.get("author") or "",
            text=values.get("text") or "",
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_poem(self, row: dict[str, Any], comments: list[dict[str, Any]] | None = None) -> Poem:
        values = STORE_POEM.to_canonical(row)
        return Poem(
            id=values["id"],
            title=values.get("title") or "",
            content_english=values.get("content_english"),
            content_greek=values.get("content_greek"),
            likes=values.get("likes") or 0,
            comments=tuple(self._to_comment(c) for c in comments or ()),
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_summary(self, row: dict[str, Any]) -> TranslationSummary:
        values = STORE_TRANSLATION.to_canonical(row)
        return TranslationSummary(
            id=values["id"],
            title=values.get("title") or "",
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_translation(self, row: dict[str, Any]) -> Translation:
        values = STORE_TRANSLATION.to_canonical(row)
        payload = values.get("payload")
        document = normalize_payload(payload, values.get("content_type") or DEFAULT_CONTENT_TYPE)
        content = values.get("content") or None

        if document is None and payload not in (None, b"", ""):
            logger.warning(f"direct_store: translation {values['id']} has an undecodable payload, dropping it")
        if document is not None and content is not None:
            logger.info(f"direct_store: translation {values['id']} has both a document and text, using the document")
            content = None

        return Translation(
            id=values["id"],
            title=values.get("title") or "",
            created_at=parse_timestamp(values.get("created_at")),
            document=document,
            content=content,
        )

    def _to_user(self, row: dict[str, Any]) -> User:
        values = STORE_USER.to_canonical(row)
        return User(
            id=values["id"],
            username=values.get("username") or "",
            email=values.get("email") or "",
            is_admin=bool(values.get("is_admin")),
        )

    @staticmethod
    def _poem_values(draft: PoemDraft) -> dict[str, Any]:
        return STORE_POEM.to_backend(
            {
                "title": draft.title,
                "content_english": draft.content_english,
                "content_greek": draft.content_greek,
            }
        )

    @staticmethod
    def _translation_values(upload: TranslationUpload, *, partial_update: bool = False) -> dict[str, Any]:
        values: dict[str, Any] = {"title": upload.title}
        if upload.created_at is not None:
            values["created_at"] = upload.created_at.isoformat()
        if upload.document:
            values["payload"] = upload.document
            values["content_type"] = upload.content_type
        elif not partial_update:
            values["payload"] = None
            values["content_type"] = upload.content_type
        return STORE_TRANSLATION.to_backend(values)

    # ---- poems ----

    async def list_poems(self) -> list[Poem]:
        rows = await self._run("poems", self._store.list_poems_with_comments)
        return [self._to_poem(r, r["comments"]) for r in rows]

    async def get_poem(self, poem_id: str) -> Poem:
        rows = await self._run(f"poem {poem_id}", self._store.list_poems_with_comments, poem_id)
        if not rows:
            raise NotFoundError(f"Poem {poem_id} not found", backend=self.name)
        return self._to_poem(rows[0], rows[0]["comments"])

    async def create_poem(self, draft: PoemDraft) -> Poem:
        row = await self._run("new poem", self._store.insert_poem, self._poem_values(draft))
        return self._to_poem(row)

    async def update_poem(self, poem_id: str, draft: PoemDraft) -> Poem:
        row = await self._run(f"poem {poem_id}", self._store.update_poem, poem_id, self._poem_values(draft))
        if row is None:
            raise NotFoundError(f"Poem {poem_id} not found", backend=self.name)
        return self._to_poem(row)

    async def delete_poem(self, poem_id: str) -> None:
        if not await self._run(f"poem {poem_id}", self._store.delete_poem, poem_id):
            raise NotFoundError(f"Poem {poem_id} not found", backend=self.name)

    async def like_poem(self, poem_id: str) -> int:
        likes = await self._run(f"poem {poem_id}", self._store.increment_likes, poem_id)
        if likes is None:
            raise NotFoundError(f"Poem {poem_id} not found", backend=self.name)
        return likes

    async def add_comment(self, poem_id: str, author: str, text: str) -> Comment:
        if not (author or "").strip() or not (text or "").strip():
            raise ValidationFailedError("Comment author and text are required", backend=self.name)
        if await self._run(f"poem {poem_id}", self._store.get_poem_row, poem_id) is None:
            raise NotFoundError(f"Poem {poem_id} not found", backend=self.name)
        values = STORE_COMMENT.to_backend({"poem_id": poem_id, "author": author, "text": text})
        row = await self._run("new comment", self._store.insert_comment, values)
        return self._to_comment(row)

    async def delete_comment(self, poem_id: str, comment_id: str) -> None:
        # Comments are addressed by id alone; poem_id is accepted for interface parity.
        if not await self._run(f"comment {comment_id}", self._store.delete_comment, comment_id):
            raise NotFoundError(f"Comment {comment_id} not found", backend=self.name)

    # ---- translations ----

    async def list_all_translations(self) -> list[TranslationSummary]:
        rows = await self._run("translations", self._store.list_translation_rows)
        return [self._to_summary(r) for r in rows]

    async def get_translation(self, translation_id: str) -> Translation:
        row = await self._run(f"translation {translation_id}", self._store.get_translation_row, translation_id)
        if row is None:
            raise NotFoundError(f"Translation {translation_id} not found", backend=self.name)
        return self._to_translation(row)

    async def create_translation(self, upload: TranslationUpload) -> Translation:
        row = await self._run("new translation", self._store.insert_translation, self._translation_values(upload))
        return self._to_translation(row)

    async def update_translation(self, translation_id: str, upload: TranslationUpload) -> Translation:
        row = await self._run(
            f"translation {translation_id}",
            self._store.update_translation,
            translation_id,
            self._translation_values(upload, partial_update=True),
        )
        if row is None:
            raise NotFoundError(f"Translation {translation_id} not found", backend=self.name)
        return self._to_translation(row)

    async def delete_translation(self, translation_id: str) -> None:
        if not await self._run(f"translation {translation_id}", self._store.delete_translation, translation_id):
            raise NotFoundError(f"Translation {translation_id} not found", backend=self.name)

    # ---- users ----

    async def list_users(self) -> list[User]:
        rows = await self._run("users", self._store.list_user_rows)
        return [self._to_user(r) for r in rows]

    async def delete_user(self, user_id: str) -> None:
        if not await self._run(f"user {user_id}", self._store.delete_user, user_id):
            raise NotFoundError(f"User {user_id} not found", backend=self.name)

    async def set_admin(self, user_id: str, is_admin: bool) -> None:
        if not await self._run(f"user {user_id}", self._store.set_user_admin, user_id, is_admin):
            raise NotFoundError(f"User {user_id} not found", backend=self.name)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        row = await self._run("login", self._store.get_user_by_email, (email or "").strip())
        if row is None or not verify_password(password, row.get("password_hash")):
            raise UnauthorizedError(INVALID_CREDENTIALS, backend=self.name)
        user = self._to_user(row)
        return AuthSession(
            token=issue_token(user.id, user.email, self._token_secret),
            is_admin=user.is_admin,
            user_id=user.id,
        )

    async def sign_up(self, username: str, email: str, password: str) -> User:
        username, email = (username or "").strip(), (email or "").strip()
        if not username or not email or not password:
            raise ValidationFailedError("Missing fields", backend=self.name)
        if await self._run("signup", self._store.get_user_by_email, email) is not None:
            raise ConflictError("User already exists", backend=self.name)
        values = STORE_USER.to_backend({"username": username, "email": email})
        values["password_hash"] = hash_password(password)
        try:
            row = await self._run("signup", self._store.insert_user, values)
        except ValidationFailedError as e:
            # Lost a race with a concurrent signup on the unique email column.
            raise ConflictError("User already exists", backend=self.name) from e
        return self._to_user(row)
