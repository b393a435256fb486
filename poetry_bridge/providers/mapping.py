"""Declarative field maps between backend row shapes and the canonical model.

Each backend names the same columns differently (``_id``/``contentEnglish`` on
the remote API, ``id``/``content_english`` in the direct store). Every backend
key either maps to exactly one canonical attribute or is listed as dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMap:
    """Bidirectional rename table for one entity on one backend."""

    entity: str
    backend: str
    fields: Mapping[str, str]
    dropped: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        targets = list(self.fields.values())
        if len(targets) != len(set(targets)):
            raise ValueError(f"{self.backend}.{self.entity}: two backend keys map to one attribute")
        overlap = self.dropped & set(self.fields)
        if overlap:
            raise ValueError(f"{self.backend}.{self.entity}: keys both mapped and dropped: {sorted(overlap)}")

    @property
    def reverse(self) -> dict[str, str]:
        return {canonical: key for key, canonical in self.fields.items()}

    def to_canonical(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Rename a backend row to canonical attribute names."""
        out: dict[str, Any] = {}
        for key, value in row.items():
            target = self.fields.get(key)
            if target is not None:
                out[target] = value
            elif key not in self.dropped:
                logger.debug(f"{self.backend}.{self.entity}: dropping unmapped key {key!r}")
        return out

    def to_backend(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Rename canonical attributes back to backend keys for writes."""
        reverse = self.reverse
        out: dict[str, Any] = {}
        for name, value in values.items():
            key = reverse.get(name)
            if key is None:
                raise KeyError(f"{self.backend}.{self.entity} has no column for {name!r}")
            out[key] = value
        return out


REMOTE = "remote_api"
STORE = "direct_store"

REMOTE_POEM = FieldMap(
    entity="poem",
    backend=REMOTE,
    fields={
        "_id": "id",
        "title": "title",
        "contentEnglish": "content_english",
        "contentGreek": "content_greek",
        "likes": "likes",
        "comments": "comments",
        "createdAt": "created_at",
    },
    dropped=frozenset({"__v", "updatedAt"}),
)

REMOTE_COMMENT = FieldMap(
    entity="comment",
    backend=REMOTE,
    fields={
        "_id": "id",
        "poem": "poem_id",
        "author": "author",
        "text": "text",
        "createdAt": "created_at",
    },
    dropped=frozenset({"__v", "updatedAt"}),
)

REMOTE_TRANSLATION = FieldMap(
    entity="translation",
    backend=REMOTE,
    fields={
        "_id": "id",
        "title": "title",
        "createdAt": "created_at",
        "content": "content",
        "contentType": "content_type",
    },
    dropped=frozenset({"__v", "updatedAt", "pdf", "filename", "fileId", "length"}),
)

REMOTE_USER = FieldMap(
    entity="user",
    backend=REMOTE,
    fields={
        "_id": "id",
        "username": "username",
        "email": "email",
        "isAdmin": "is_admin",
    },
    dropped=frozenset({"__v", "password", "createdAt", "updatedAt"}),
)

STORE_POEM = FieldMap(
    entity="poem",
    backend=STORE,
    fields={
        "id": "id",
        "title": "title",
        "content_english": "content_english",
        "content_greek": "content_greek",
        "likes": "likes",
        "created_at": "created_at",
    },
    dropped=frozenset({"updated_at"}),
)

STORE_COMMENT = FieldMap(
    entity="comment",
    backend=STORE,
    fields={
        "id": "id",
        "poem_id": "poem_id",
        "author": "author",
        "text": "text",
        "created_at": "created_at",
    },
)

STORE_TRANSLATION = FieldMap(
    entity="translation",
    backend=STORE,
    fields={
        "id": "id",
        "title": "title",
        "created_at": "created_at",
        "pdf_data": "payload",
        "content": "content",
        "content_type": "content_type",
    },
    dropped=frozenset({"updated_at"}),
)

STORE_USER = FieldMap(
    entity="user",
    backend=STORE,
    fields={
        "id": "id",
        "username": "username",
        "email": "email",
        "is_admin": "is_admin",
    },
    dropped=frozenset({"password_hash", "created_at"}),
)

ALL_MAPS: tuple[FieldMap, ...] = (
    REMOTE_POEM,
    REMOTE_COMMENT,
    REMOTE_TRANSLATION,
    REMOTE_USER,
    STORE_POEM,
    STORE_COMMENT,
    STORE_TRANSLATION,
    STORE_USER,
)
