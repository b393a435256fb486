"""Adapter for the remote poetry HTTP API.

Responses are already close to the canonical shape (camelCase keys, ``_id``
ids) and documents come back from a dedicated stream route as final bytes, so
nothing on this path needs payload normalization.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from poetry_bridge.core.errors import (
    INVALID_CREDENTIALS,
    BackendUnreachableError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from poetry_bridge.providers.base import BackendAdapter
from poetry_bridge.providers.content_types import (
    DEFAULT_CONTENT_TYPE,
    AuthSession,
    Comment,
    Document,
    Poem,
    PoemDraft,
    Translation,
    TranslationSummary,
    TranslationUpload,
    User,
    parse_timestamp,
)
from poetry_bridge.providers.mapping import (
    REMOTE_COMMENT,
    REMOTE_POEM,
    REMOTE_TRANSLATION,
    REMOTE_USER,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("msg") or body.get("message") or body.get("error") or body)
    return str(body)


class RemoteApiAdapter(BackendAdapter):
    """Talks to the remote HTTP service; one request per operation, no retries."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Remote API base URL is required")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "remote_api"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                headers=headers,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, *, what: str, **kwargs: Any) -> httpx.Response:
        """Send one request and translate failures into backend-tagged errors."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"remote_api: {method} {path} timed out")
            raise BackendUnreachableError(f"Timed out while requesting {what}", backend=self.name) from e
        except httpx.TransportError as e:
            logger.warning(f"remote_api: {method} {path} failed: {e}")
            raise BackendUnreachableError(f"Could not reach the remote API ({e})", backend=self.name) from e

        if response.is_success:
            return response

        status = response.status_code
        detail = _error_detail(response)
        logger.warning(f"remote_api: {method} {path} -> {status} {detail}")
        if status == 404:
            raise NotFoundError(f"{what} not found", backend=self.name)
        if status in (401, 403):
            raise UnauthorizedError(f"Not allowed to access {what}", backend=self.name)
        if status == 409:
            raise ConflictError(detail, backend=self.name)
        if 400 <= status < 500:
            raise ValidationFailedError(f"Rejected request for {what}: {detail}", backend=self.name)
        raise BackendUnreachableError(f"Remote API error {status} for {what}", backend=self.name)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise BackendUnreachableError("Remote API returned invalid JSON", backend="remote_api") from e

    # ---- mapping ----

    def _to_comment(self, raw: dict[str, Any], poem_id: str) -> Comment:
        values = REMOTE_COMMENT.to_canonical(raw)
        return Comment(
            id=str(values.get("id", "")),
            poem_id=str(values.get("poem_id") or poem_id),
            author=values.get("author") or "",
            text=values.get("text") or "",
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_poem(self, raw: dict[str, Any]) -> Poem:
        values = REMOTE_POEM.to_canonical(raw)
        poem_id = str(values.get("id", ""))
        return Poem(
            id=poem_id,
            title=values.get("title") or "",
            content_english=values.get("content_english"),
            content_greek=values.get("content_greek"),
            likes=values.get("likes") or 0,
            comments=tuple(self._to_comment(c, poem_id) for c in values.get("comments") or ()),
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_summary(self, raw: dict[str, Any]) -> TranslationSummary:
        values = REMOTE_TRANSLATION.to_canonical(raw)
        return TranslationSummary(
            id=str(values.get("id", "")),
            title=values.get("title") or "",
            created_at=parse_timestamp(values.get("created_at")),
        )

    def _to_user(self, raw: dict[str, Any]) -> User:
        values = REMOTE_USER.to_canonical(raw)
        return User(
            id=str(values.get("id", "")),
            username=values.get("username") or "",
            email=values.get("email") or "",
            is_admin=bool(values.get("is_admin", False)),
        )

    @staticmethod
    def _poem_body(draft: PoemDraft) -> dict[str, Any]:
        return REMOTE_POEM.to_backend(
            {
                "title": draft.title,
                "content_english": draft.content_english,
                "content_greek": draft.content_greek,
            }
        )

    @staticmethod
    def _upload_parts(upload: TranslationUpload) -> dict[str, Any]:
        data = {"title": upload.title}
        if upload.created_at is not None:
            data["date"] = upload.created_at.isoformat()
        parts: dict[str, Any] = {"data": data}
        if upload.document:
            parts["files"] = {"pdf": (upload.filename, upload.document, upload.content_type)}
        return parts

    # ---- poems ----

    async def list_poems(self) -> list[Poem]:
        response = await self._request("GET", "/poetry", what="poems")
        return [self._to_poem(p) for p in self._json(response)]

    async def get_poem(self, poem_id: str) -> Poem:
        response = await self._request("GET", f"/poetry/{poem_id}", what=f"Poem {poem_id}")
        return self._to_poem(self._json(response))

    async def create_poem(self, draft: PoemDraft) -> Poem:
        response = await self._request("POST", "/poetry", what="new poem", json=self._poem_body(draft))
        return self._to_poem(self._json(response))

    async def update_poem(self, poem_id: str, draft: PoemDraft) -> Poem:
        response = await self._request(
            "PUT", f"/poetry/{poem_id}", what=f"Poem {poem_id}", json=self._poem_body(draft)
        )
        return self._to_poem(self._json(response))

    async def delete_poem(self, poem_id: str) -> None:
        await self._request("DELETE", f"/poetry/{poem_id}", what=f"Poem {poem_id}")

    async def like_poem(self, poem_id: str) -> int:
        response = await self._request("POST", f"/poetry/{poem_id}/like", what=f"Poem {poem_id}")
        return int(self._json(response).get("likes", 0))

    async def add_comment(self, poem_id: str, author: str, text: str) -> Comment:
        response = await self._request(
            "POST",
            f"/poetry/{poem_id}/comments",
            what=f"Poem {poem_id}",
            json={"author": author, "text": text},
        )
        return self._to_comment(self._json(response), poem_id)

    async def delete_comment(self, poem_id: str, comment_id: str) -> None:
        await self._request(
            "DELETE", f"/poetry/{poem_id}/comments/{comment_id}", what=f"Comment {comment_id}"
        )

    # ---- translations ----

    async def list_all_translations(self) -> list[TranslationSummary]:
        response = await self._request("GET", "/translations/all", what="translations")
        return [self._to_summary(t) for t in self._json(response)]

    async def get_translation(self, translation_id: str) -> Translation:
        info_response = await self._request(
            "GET", f"/translations/info/{translation_id}", what=f"Translation {translation_id}"
        )
        info = REMOTE_TRANSLATION.to_canonical(self._json(info_response))
        summary = TranslationSummary(
            id=str(info.get("id") or translation_id),
            title=info.get("title") or "",
            created_at=parse_timestamp(info.get("created_at")),
        )

        try:
            stream = await self._request(
                "GET", f"/translations/stream/{translation_id}", what=f"Document for {translation_id}"
            )
        except NotFoundError:
            # Text-only translations have nothing to stream.
            return Translation(
                id=summary.id,
                title=summary.title,
                created_at=summary.created_at,
                content=info.get("content"),
            )

        content_type = stream.headers.get("content-type") or info.get("content_type") or DEFAULT_CONTENT_TYPE
        return Translation(
            id=summary.id,
            title=summary.title,
            created_at=summary.created_at,
            document=Document(data=stream.content, content_type=content_type.split(";")[0].strip()),
        )

    async def create_translation(self, upload: TranslationUpload) -> Translation:
        response = await self._request(
            "POST", "/translations/upload", what="new translation", **self._upload_parts(upload)
        )
        created = self._to_summary(self._json(response))
        if not created.id:
            raise BackendUnreachableError("Remote API did not return the new translation id", backend=self.name)
        # The upload response carries metadata only; read back what the server stored.
        return await self.get_translation(created.id)

    async def update_translation(self, translation_id: str, upload: TranslationUpload) -> Translation:
        await self._request(
            "PUT",
            f"/translations/update/{translation_id}",
            what=f"Translation {translation_id}",
            **self._upload_parts(upload),
        )
        return await self.get_translation(translation_id)

    async def delete_translation(self, translation_id: str) -> None:
        await self._request(
            "DELETE", f"/translations/delete/{translation_id}", what=f"Translation {translation_id}"
        )

    # ---- users ----

    async def list_users(self) -> list[User]:
        response = await self._request("GET", "/users", what="users")
        return [self._to_user(u) for u in self._json(response)]

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/user/{user_id}", what=f"User {user_id}")

    async def set_admin(self, user_id: str, is_admin: bool) -> None:
        action = "make-admin" if is_admin else "remove-admin"
        await self._request("PUT", f"/user/{user_id}/{action}", what=f"User {user_id}")

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = await self._request(
                "POST", "/login", what="login", json={"email": email, "password": password}
            )
        except (NotFoundError, UnauthorizedError, ValidationFailedError) as e:
            # Never reveal which of email or password was wrong.
            raise UnauthorizedError(INVALID_CREDENTIALS, backend=self.name) from e
        data = self._json(response)
        if not data.get("token"):
            raise UnauthorizedError(INVALID_CREDENTIALS, backend=self.name)
        user_id = data.get("userId") or data.get("_id")
        return AuthSession(
            token=data["token"],
            is_admin=bool(data.get("isAdmin", False)),
            user_id=str(user_id) if user_id else None,
        )

    async def sign_up(self, username: str, email: str, password: str) -> User:
        try:
            response = await self._request(
                "POST",
                "/signup",
                what="signup",
                json={"username": username, "email": email, "password": password},
            )
        except ValidationFailedError as e:
            if "exist" in e.message.lower():
                raise ConflictError("User already exists", backend=self.name) from e
            raise
        data = self._json(response)
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        if not isinstance(data, dict):
            data = {}
        user = self._to_user(data)
        return User(id=user.id, username=user.username or username, email=user.email or email, is_admin=user.is_admin)

