"""Turn a Translation into something a viewer can display."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from poetry_bridge.core.errors import DecodeFailedError
from poetry_bridge.providers.content_types import Document, Translation

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

NO_CONTENT_MESSAGE = "No content available for this translation"

jinja = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_translation(translation: Translation, backend: str) -> Document:
    """Return the stored document, or an HTML page for plain-text translations.

    Raises DecodeFailedError for a translation whose payload could not be
    recovered, so the caller shows a no-content state instead of waiting.
    """
    if translation.document is not None:
        return translation.document
    if translation.content is not None:
        html = jinja.get_template("translation.html").render(
            title=translation.title,
            content=translation.content,
            created_at=translation.created_at,
        )
        return Document(data=html.encode("utf-8"), content_type="text/html; charset=utf-8")
    raise DecodeFailedError(NO_CONTENT_MESSAGE, backend=backend)
