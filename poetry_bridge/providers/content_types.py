"""Backend-agnostic content types for poems, translations, comments and users."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

# Shown instead of an empty English or Greek text.
MISSING_TRANSLATION = "This work has no translation yet..."

# Translations titled like this are scanned poems, not translations.
POEM_DOCUMENT_PREFIX = "POEM"

DEFAULT_CONTENT_TYPE = "application/pdf"

CONTENT_SIGNATURES: dict[str, bytes] = {
    "application/pdf": b"%PDF",
    "image/png": b"\x89PNG",
    "image/jpeg": b"\xff\xd8\xff",
}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse the timestamp shapes both backends emit (ISO strings, epoch ms, datetimes)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _text_or_placeholder(value: str | None) -> str:
    if value is None or not str(value).strip():
        return MISSING_TRANSLATION
    return value


@dataclass(frozen=True)
class Comment:
    """A reader comment on a poem. Never edited, only deleted."""

    id: str
    poem_id: str
    author: str
    text: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Poem:
    """A poem with its English and Greek texts."""

    id: str
    title: str
    content_english: str = MISSING_TRANSLATION
    content_greek: str = MISSING_TRANSLATION
    likes: int = 0
    comments: tuple[Comment, ...] = ()
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "content_english", _text_or_placeholder(self.content_english))
        object.__setattr__(self, "content_greek", _text_or_placeholder(self.content_greek))
        object.__setattr__(self, "likes", max(int(self.likes or 0), 0))
        object.__setattr__(self, "comments", tuple(self.comments))


@dataclass(frozen=True)
class Document:
    """Renderable bytes of a stored document, tagged with a content type."""

    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def signature_ok(self) -> bool:
        signature = CONTENT_SIGNATURES.get(self.content_type)
        return signature is None or self.data.startswith(signature)

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TranslationSummary:
    """Listing entry for a translation; payloads are not loaded for listings."""

    id: str
    title: str
    created_at: datetime | None = None

    @property
    def is_poem_document(self) -> bool:
        return is_poem_document_title(self.title)

    @property
    def display_title(self) -> str:
        if not self.is_poem_document:
            return self.title
        return self.title[len(POEM_DOCUMENT_PREFIX):].strip() or self.title


@dataclass(frozen=True)
class Translation:
    """A translation carrying either a document or plain-text content.

    Both empty means the stored payload could not be recovered; callers must
    show a "no content available" state for it.
    """

    id: str
    title: str
    created_at: datetime | None = None
    document: Document | None = None
    content: str | None = None

    def __post_init__(self) -> None:
        if self.document is not None and self.content is not None:
            raise ValueError("Translation cannot carry both a document and text content")

    @property
    def is_empty(self) -> bool:
        return self.document is None and self.content is None

    @property
    def is_poem_document(self) -> bool:
        return is_poem_document_title(self.title)

    def summary(self) -> TranslationSummary:
        return TranslationSummary(id=self.id, title=self.title, created_at=self.created_at)


@dataclass(frozen=True)
class User:
    """An account as seen by callers. The stored credential never leaves the adapter."""

    id: str
    username: str
    email: str
    is_admin: bool = False


@dataclass(frozen=True)
class AuthSession:
    """Result of a successful sign-in."""

    token: str
    is_admin: bool = False
    user_id: str | None = None


@dataclass(frozen=True)
class PoemDraft:
    """Caller input for creating or updating a poem."""

    title: str
    content_english: str = ""
    content_greek: str = ""

    def __post_init__(self) -> None:
        if not (self.title or "").strip():
            raise ValueError("Poem title is required")
        object.__setattr__(self, "content_english", _text_or_placeholder(self.content_english))
        object.__setattr__(self, "content_greek", _text_or_placeholder(self.content_greek))


@dataclass(frozen=True)
class TranslationUpload:
    """Caller input for creating or updating a translation document."""

    title: str
    created_at: datetime | None = None
    document: bytes | None = None
    filename: str = "translation.pdf"
    content_type: str = DEFAULT_CONTENT_TYPE

    def __post_init__(self) -> None:
        if not (self.title or "").strip():
            raise ValueError("Translation title is required")


@dataclass
class PoemCatalog:
    """Everything shown on the poems listing: poems plus scanned poem documents."""

    poems: list[Poem] = field(default_factory=list)
    documents: list[TranslationSummary] = field(default_factory=list)


def is_poem_document_title(title: str | None) -> bool:
    return bool(title) and title.startswith(POEM_DOCUMENT_PREFIX)


def split_poem_documents(
    summaries: Iterable[TranslationSummary],
) -> tuple[list[TranslationSummary], list[TranslationSummary]]:
    """Split translation listings into (translations, poem documents)."""
    translations: list[TranslationSummary] = []
    documents: list[TranslationSummary] = []
    for summary in summaries:
        (documents if summary.is_poem_document else translations).append(summary)
    return translations, documents
