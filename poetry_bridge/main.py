from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from poetry_bridge.core.dispatcher import get_dispatcher, init_dispatcher, shutdown_dispatcher
from poetry_bridge.core.errors import BackendError, ErrorKind, ValidationFailedError
from poetry_bridge.core.settings import Settings
from poetry_bridge.providers.content_types import (
    DEFAULT_CONTENT_TYPE,
    PoemDraft,
    Translation,
    TranslationSummary,
    TranslationUpload,
)

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DECODE_FAILED: 422,
    ErrorKind.BACKEND_UNREACHABLE: 502,
}

app = FastAPI(title="poetry-bridge")


@app.on_event("startup")
def _startup() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_dispatcher(settings)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await shutdown_dispatcher()


@app.exception_handler(BackendError)
async def _backend_error(request: Request, exc: BackendError) -> JSONResponse:
    status = STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status, content=exc.to_dict())


# ==================== Request bodies ====================


class BackendChoice(BaseModel):
    backend: str


class PoemBody(BaseModel):
    title: str
    contentEnglish: str = ""
    contentGreek: str = ""


class CommentBody(BaseModel):
    author: str
    text: str


class LoginBody(BaseModel):
    email: str
    password: str


class SignupBody(BaseModel):
    username: str
    email: str
    password: str


def _current_backend() -> str:
    return get_dispatcher().backend.value


def _draft(body: PoemBody) -> PoemDraft:
    try:
        return PoemDraft(title=body.title, content_english=body.contentEnglish, content_greek=body.contentGreek)
    except ValueError as e:
        raise ValidationFailedError(str(e), backend=_current_backend()) from e


def _summary_dict(summary: TranslationSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "title": summary.title,
        "displayTitle": summary.display_title,
        "createdAt": summary.created_at.isoformat() if summary.created_at else None,
    }


def _translation_dict(translation: Translation) -> dict[str, Any]:
    data = _summary_dict(translation.summary())
    data["hasDocument"] = translation.document is not None
    data["contentType"] = translation.document.content_type if translation.document else None
    data["content"] = translation.content
    data["empty"] = translation.is_empty
    return data


# ==================== Backend selection ====================


@app.get("/api/backend")
def api_backend():
    """Active backend, whether the direct store can be selected, and the switch counter."""
    dispatcher = get_dispatcher()
    selection = dispatcher.selection
    return {
        "backend": selection.current.value,
        "directStoreReady": selection.direct_store_ready,
        "generation": selection.generation,
    }


@app.put("/api/backend")
def api_set_backend(choice: BackendChoice):
    dispatcher = get_dispatcher()
    backend = dispatcher.switch(choice.backend)
    return {"backend": backend.value, "generation": dispatcher.generation}


# ==================== Poems ====================


@app.get("/api/poems")
async def api_poems():
    return await get_dispatcher().list_poems()


@app.get("/api/poems/{poem_id}")
async def api_poem(poem_id: str):
    return await get_dispatcher().get_poem(poem_id)


@app.post("/api/poems", status_code=201)
async def api_create_poem(body: PoemBody):
    return await get_dispatcher().create_poem(_draft(body))


@app.put("/api/poems/{poem_id}")
async def api_update_poem(poem_id: str, body: PoemBody):
    return await get_dispatcher().update_poem(poem_id, _draft(body))


@app.delete("/api/poems/{poem_id}")
async def api_delete_poem(poem_id: str):
    await get_dispatcher().delete_poem(poem_id)
    return {"success": True}


@app.post("/api/poems/{poem_id}/like")
async def api_like_poem(poem_id: str):
    likes = await get_dispatcher().like_poem(poem_id)
    return {"likes": likes}


@app.post("/api/poems/{poem_id}/comments", status_code=201)
async def api_add_comment(poem_id: str, body: CommentBody):
    return await get_dispatcher().add_comment(poem_id, body.author, body.text)


@app.delete("/api/poems/{poem_id}/comments/{comment_id}")
async def api_delete_comment(poem_id: str, comment_id: str):
    await get_dispatcher().delete_comment(poem_id, comment_id)
    return {"success": True}


@app.get("/api/poem-documents")
async def api_poem_documents():
    """Scanned poems stored as translation records."""
    documents = await get_dispatcher().list_poem_documents()
    return [_summary_dict(d) for d in documents]


# ==================== Translations ====================


@app.get("/api/translations")
async def api_translations():
    translations = await get_dispatcher().list_translations()
    return [_summary_dict(t) for t in translations]


@app.get("/api/translations/{translation_id}")
async def api_translation(translation_id: str):
    return _translation_dict(await get_dispatcher().get_translation(translation_id))


@app.get("/api/translations/{translation_id}/document")
async def api_translation_document(translation_id: str):
    """Raw document bytes, or an HTML page for text-only translations."""
    document = await get_dispatcher().get_translation_document(translation_id)
    return Response(content=document.data, media_type=document.content_type)


async def _upload(
    title: str,
    date: str | None,
    pdf: UploadFile | None,
) -> TranslationUpload:
    backend = _current_backend()
    created_at = None
    if date:
        try:
            created_at = datetime.fromisoformat(date.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationFailedError(f"Invalid date {date!r}", backend=backend) from e
    data = await pdf.read() if pdf is not None else None
    try:
        return TranslationUpload(
            title=title,
            created_at=created_at,
            document=data or None,
            filename=(pdf.filename if pdf is not None and pdf.filename else "translation.pdf"),
            content_type=(pdf.content_type if pdf is not None and pdf.content_type else DEFAULT_CONTENT_TYPE),
        )
    except ValueError as e:
        raise ValidationFailedError(str(e), backend=backend) from e


@app.post("/api/translations", status_code=201)
async def api_create_translation(
    title: str = Form(...),
    date: str | None = Form(None),
    pdf: UploadFile | None = File(None),
):
    upload = await _upload(title, date, pdf)
    return _translation_dict(await get_dispatcher().create_translation(upload))


@app.put("/api/translations/{translation_id}")
async def api_update_translation(
    translation_id: str,
    title: str = Form(...),
    date: str | None = Form(None),
    pdf: UploadFile | None = File(None),
):
    upload = await _upload(title, date, pdf)
    return _translation_dict(await get_dispatcher().update_translation(translation_id, upload))


@app.delete("/api/translations/{translation_id}")
async def api_delete_translation(translation_id: str):
    await get_dispatcher().delete_translation(translation_id)
    return {"success": True}


# ==================== Users ====================


@app.get("/api/users")
async def api_users():
    return await get_dispatcher().list_users()


@app.delete("/api/users/{user_id}")
async def api_delete_user(user_id: str):
    await get_dispatcher().delete_user(user_id)
    return {"success": True}


@app.put("/api/users/{user_id}/make-admin")
async def api_make_admin(user_id: str):
    await get_dispatcher().make_admin(user_id)
    return {"success": True}


@app.put("/api/users/{user_id}/remove-admin")
async def api_remove_admin(user_id: str):
    await get_dispatcher().remove_admin(user_id)
    return {"success": True}


# ==================== Auth ====================


@app.post("/api/auth/login")
async def api_login(body: LoginBody):
    session = await get_dispatcher().sign_in(body.email, body.password)
    return {"token": session.token, "isAdmin": session.is_admin, "userId": session.user_id}


@app.post("/api/auth/signup", status_code=201)
async def api_signup(body: SignupBody):
    user = await get_dispatcher().sign_up(body.username, body.email, body.password)
    return {"message": "User created successfully", "user": user}
