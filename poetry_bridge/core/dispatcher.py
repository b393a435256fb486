"""Single entry point that routes every action to the selected backend."""

from __future__ import annotations

import logging
from typing import Mapping

from poetry_bridge.core.errors import BackendUnreachableError
from poetry_bridge.core.preferences import PreferenceStore
from poetry_bridge.core.rendering import render_translation
from poetry_bridge.core.selection import BackendId, BackendSelection
from poetry_bridge.core.settings import Settings
from poetry_bridge.core.storage import init_store
from poetry_bridge.providers.base import BackendAdapter
from poetry_bridge.providers.content_types import (
    AuthSession,
    Comment,
    Document,
    Poem,
    PoemCatalog,
    PoemDraft,
    Translation,
    TranslationSummary,
    TranslationUpload,
    User,
)
from poetry_bridge.providers.direct_store import DirectStoreAdapter
from poetry_bridge.providers.remote_api import RemoteApiAdapter

logger = logging.getLogger(__name__)


class Dispatcher:
    """Forwards each call to the adapter for ``selection.current``.

    Results and errors pass through unchanged. Nothing is cached, so a switch
    needs no invalidation: the next call simply goes to the other adapter.
    """

    def __init__(self, selection: BackendSelection, adapters: Mapping[BackendId, BackendAdapter]) -> None:
        self.selection = selection
        self._adapters = dict(adapters)

    @property
    def backend(self) -> BackendId:
        return self.selection.current

    @property
    def generation(self) -> int:
        """Capture before a call and compare afterwards to spot a switch mid-flight."""
        return self.selection.generation

    def adapter(self, backend: BackendId | None = None) -> BackendAdapter:
        target = backend or self.selection.current
        adapter = self._adapters.get(target)
        if adapter is None:
            raise BackendUnreachableError(f"No adapter configured for {target.value}", backend=target.value)
        return adapter

    def switch(self, backend: BackendId | str) -> BackendId:
        return self.selection.set(backend)

    # ---- poems ----

    async def list_poems(self) -> list[Poem]:
        return await self.adapter().list_poems()

    async def poem_catalog(self) -> PoemCatalog:
        """Poems and scanned poem documents from the same backend."""
        adapter = self.adapter()
        return PoemCatalog(
            poems=await adapter.list_poems(),
            documents=await adapter.list_poem_documents(),
        )

    async def get_poem(self, poem_id: str) -> Poem:
        return await self.adapter().get_poem(poem_id)

    async def create_poem(self, draft: PoemDraft) -> Poem:
        return await self.adapter().create_poem(draft)

    async def update_poem(self, poem_id: str, draft: PoemDraft) -> Poem:
        return await self.adapter().update_poem(poem_id, draft)

    async def delete_poem(self, poem_id: str) -> None:
        await self.adapter().delete_poem(poem_id)

    async def like_poem(self, poem_id: str) -> int:
        return await self.adapter().like_poem(poem_id)

    async def add_comment(self, poem_id: str, author: str, text: str) -> Comment:
        return await self.adapter().add_comment(poem_id, author, text)

    async def delete_comment(self, poem_id: str, comment_id: str) -> None:
        await self.adapter().delete_comment(poem_id, comment_id)

    # ---- translations ----

    async def list_translations(self) -> list[TranslationSummary]:
        return await self.adapter().list_translations()

    async def list_poem_documents(self) -> list[TranslationSummary]:
        return await self.adapter().list_poem_documents()

    async def get_translation(self, translation_id: str) -> Translation:
        return await self.adapter().get_translation(translation_id)

    async def get_translation_document(self, translation_id: str) -> Document:
        """The translation's displayable bytes; DecodeFailedError when there are none."""
        adapter = self.adapter()
        translation = await adapter.get_translation(translation_id)
        return render_translation(translation, backend=adapter.name)

    async def create_translation(self, upload: TranslationUpload) -> Translation:
        return await self.adapter().create_translation(upload)

    async def update_translation(self, translation_id: str, upload: TranslationUpload) -> Translation:
        return await self.adapter().update_translation(translation_id, upload)

    async def delete_translation(self, translation_id: str) -> None:
        await self.adapter().delete_translation(translation_id)

    # ---- users ----

    async def list_users(self) -> list[User]:
        return await self.adapter().list_users()

    async def delete_user(self, user_id: str) -> None:
        await self.adapter().delete_user(user_id)

    async def make_admin(self, user_id: str) -> None:
        await self.adapter().set_admin(user_id, True)

    async def remove_admin(self, user_id: str) -> None:
        await self.adapter().set_admin(user_id, False)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await self.adapter().sign_in(email, password)

    async def sign_up(self, username: str, email: str, password: str) -> User:
        return await self.adapter().sign_up(username, email, password)

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()


_dispatcher: Dispatcher | None = None
_preferences: PreferenceStore | None = None


def build_dispatcher(settings: Settings, preferences: PreferenceStore | None = None) -> Dispatcher:
    """Wire adapters and the persisted selection from settings."""
    adapters: dict[BackendId, BackendAdapter] = {
        BackendId.REMOTE_API: RemoteApiAdapter(
            settings.remote_api_url,
            token=settings.remote_api_token or None,
            timeout=settings.request_timeout,
        ),
    }
    store = init_store(settings)
    if store is not None:
        adapters[BackendId.DIRECT_STORE] = DirectStoreAdapter(store, token_secret=settings.token_secret)
    else:
        logger.info("Direct store not configured; only remote_api is available")

    selection = BackendSelection.load(settings, preferences)
    logger.info(f"Dispatcher ready on {selection.current.value}")
    return Dispatcher(selection, adapters)


def init_dispatcher(settings: Settings | None = None) -> Dispatcher:
    global _dispatcher, _preferences
    s = settings or Settings.from_env()
    _preferences = PreferenceStore.open(s.preferences_path)
    _dispatcher = build_dispatcher(s, _preferences)
    return _dispatcher


def get_dispatcher() -> Dispatcher:
    assert _dispatcher is not None, "Dispatcher not initialized"
    return _dispatcher


async def shutdown_dispatcher() -> None:
    global _dispatcher, _preferences
    if _dispatcher is not None:
        await _dispatcher.close()
        _dispatcher = None
    if _preferences is not None:
        _preferences.close()
        _preferences = None
