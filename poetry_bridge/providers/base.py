"""Backend adapter abstraction shared by the remote API and the direct store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from poetry_bridge.providers.content_types import (
    AuthSession,
    Comment,
    Poem,
    PoemDraft,
    Translation,
    TranslationSummary,
    TranslationUpload,
    User,
    split_poem_documents,
)


class BackendAdapter(ABC):
    """Translates one backend's protocol and row shapes into the canonical model.

    Every method returns canonical values only and raises ``BackendError``
    subclasses tagged with :attr:`name` on failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier used to tag errors (e.g. 'remote_api')."""
        ...

    # ---- poems ----

    @abstractmethod
    async def list_poems(self) -> list[Poem]:
        ...

    @abstractmethod
    async def get_poem(self, poem_id: str) -> Poem:
        ...

    @abstractmethod
    async def create_poem(self, draft: PoemDraft) -> Poem:
        ...

    @abstractmethod
    async def update_poem(self, poem_id: str, draft: PoemDraft) -> Poem:
        ...

    @abstractmethod
    async def delete_poem(self, poem_id: str) -> None:
        ...

    @abstractmethod
    async def like_poem(self, poem_id: str) -> int:
        """Add one like and return the new count."""
        ...

    @abstractmethod
    async def add_comment(self, poem_id: str, author: str, text: str) -> Comment:
        ...

    @abstractmethod
    async def delete_comment(self, poem_id: str, comment_id: str) -> None:
        ...

    # ---- translations ----

    @abstractmethod
    async def list_all_translations(self) -> list[TranslationSummary]:
        """Every translation record, poem documents included."""
        ...

    async def list_translations(self) -> list[TranslationSummary]:
        """Translations listing; poem documents are left out."""
        translations, _ = split_poem_documents(await self.list_all_translations())
        return translations

    async def list_poem_documents(self) -> list[TranslationSummary]:
        """Translation records that are scanned poems, for the poems listing."""
        _, documents = split_poem_documents(await self.list_all_translations())
        return documents

    @abstractmethod
    async def get_translation(self, translation_id: str) -> Translation:
        ...

    @abstractmethod
    async def create_translation(self, upload: TranslationUpload) -> Translation:
        ...

    @abstractmethod
    async def update_translation(self, translation_id: str, upload: TranslationUpload) -> Translation:
        ...

    @abstractmethod
    async def delete_translation(self, translation_id: str) -> None:
        ...

    # ---- users ----

    @abstractmethod
    async def list_users(self) -> list[User]:
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def set_admin(self, user_id: str, is_admin: bool) -> None:
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    async def sign_up(self, username: str, email: str, password: str) -> User:
        ...

    async def close(self) -> None:
        """Release network clients or connections owned by the adapter."""
        return None
