"""Tests for dispatcher.py"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from poetry_bridge.core import dispatcher as dispatcher_module
from poetry_bridge.core.dispatcher import Dispatcher, build_dispatcher
from poetry_bridge.core.errors import BackendUnreachableError, DecodeFailedError, NotFoundError
from poetry_bridge.core.preferences import PREFERRED_BACKEND_KEY, PreferenceStore
from poetry_bridge.core.selection import BackendId, BackendSelection
from poetry_bridge.core.settings import Settings
from poetry_bridge.core.storage import connect_store
from poetry_bridge.providers.base import BackendAdapter
from poetry_bridge.providers.content_types import (
    Document,
    Poem,
    PoemDraft,
    Translation,
    TranslationSummary,
)
from poetry_bridge.providers.direct_store import DirectStoreAdapter
from poetry_bridge.providers.remote_api import RemoteApiAdapter


def mock_adapter(name):
    adapter = MagicMock(spec=BackendAdapter)
    adapter.name = name
    for method in (
        "list_poems",
        "get_poem",
        "list_translations",
        "list_poem_documents",
        "get_translation",
        "set_admin",
        "sign_in",
        "close",
    ):
        setattr(adapter, method, AsyncMock())
    return adapter


@pytest.fixture
def adapters():
    return {
        BackendId.REMOTE_API: mock_adapter("remote_api"),
        BackendId.DIRECT_STORE: mock_adapter("direct_store"),
    }


@pytest.fixture
def dispatcher(adapters):
    selection = BackendSelection(BackendId.REMOTE_API, direct_store_ready=True)
    return Dispatcher(selection, adapters)


class TestRouting:
    """Tests for forwarding calls to the active adapter."""

    @pytest.mark.asyncio
    async def test_forwards_to_selected_backend(self, dispatcher, adapters):
        poems = [Poem(id="p1", title="T")]
        adapters[BackendId.REMOTE_API].list_poems.return_value = poems

        assert await dispatcher.list_poems() is poems
        adapters[BackendId.DIRECT_STORE].list_poems.assert_not_called()

    @pytest.mark.asyncio
    async def test_switch_then_list_queries_only_new_backend(self, dispatcher, adapters):
        await dispatcher.list_poems()
        dispatcher.switch("direct_store")
        await dispatcher.list_poems()

        adapters[BackendId.REMOTE_API].list_poems.assert_awaited_once()
        adapters[BackendId.DIRECT_STORE].list_poems.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_errors_pass_through(self, dispatcher, adapters):
        error = NotFoundError("Poem p1 not found", backend="remote_api")
        adapters[BackendId.REMOTE_API].get_poem.side_effect = error

        with pytest.raises(NotFoundError) as exc:
            await dispatcher.get_poem("p1")
        assert exc.value is error

    @pytest.mark.asyncio
    async def test_admin_helpers(self, dispatcher, adapters):
        await dispatcher.make_admin("u1")
        await dispatcher.remove_admin("u1")
        remote = adapters[BackendId.REMOTE_API]
        assert [c.args for c in remote.set_admin.await_args_list] == [("u1", True), ("u1", False)]

    @pytest.mark.asyncio
    async def test_missing_adapter(self):
        selection = BackendSelection(BackendId.DIRECT_STORE, direct_store_ready=True)
        dispatcher = Dispatcher(selection, {})
        with pytest.raises(BackendUnreachableError) as exc:
            await dispatcher.list_poems()
        assert exc.value.backend == "direct_store"

    def test_generation_tracks_switches(self, dispatcher):
        before = dispatcher.generation
        dispatcher.switch(BackendId.DIRECT_STORE)
        assert dispatcher.generation == before + 1
        assert dispatcher.backend is BackendId.DIRECT_STORE

    @pytest.mark.asyncio
    async def test_close_closes_every_adapter(self, dispatcher, adapters):
        await dispatcher.close()
        for adapter in adapters.values():
            adapter.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_poem_catalog_reads_one_backend(self, dispatcher, adapters):
        remote = adapters[BackendId.REMOTE_API]
        remote.list_poems.return_value = [Poem(id="p1", title="T")]
        remote.list_poem_documents.return_value = [TranslationSummary(id="t1", title="POEM Candles")]

        catalog = await dispatcher.poem_catalog()
        assert [p.id for p in catalog.poems] == ["p1"]
        assert [d.id for d in catalog.documents] == ["t1"]
        adapters[BackendId.DIRECT_STORE].list_poems.assert_not_called()


class TestTranslationDocument:
    """Tests for Dispatcher.render_translation."""

    @pytest.mark.asyncio
    async def test_document(self, dispatcher, adapters):
        doc = Document(b"%PDF-1.4")
        adapters[BackendId.REMOTE_API].get_translation.return_value = Translation(id="t1", title="T", document=doc)
        assert await dispatcher.get_translation_document("t1") == doc

    @pytest.mark.asyncio
    async def test_text_content_renders_html(self, dispatcher, adapters):
        adapters[BackendId.REMOTE_API].get_translation.return_value = Translation(
            id="t1", title="Ithaca", content="As you set out"
        )
        doc = await dispatcher.get_translation_document("t1")
        assert doc.content_type.startswith("text/html")
        assert b"As you set out" in doc.data

    @pytest.mark.asyncio
    async def test_empty_translation_raises(self, dispatcher, adapters):
        dispatcher.switch(BackendId.DIRECT_STORE)
        adapters[BackendId.DIRECT_STORE].get_translation.return_value = Translation(id="t1", title="T")
        with pytest.raises(DecodeFailedError) as exc:
            await dispatcher.get_translation_document("t1")
        assert exc.value.backend == "direct_store"


class TestPoemDocumentsAcrossBackends:
    """Both real adapters hide prefixed titles from translations the same way."""

    @pytest.mark.asyncio
    async def test_same_split_on_both_backends(self):
        listing = [
            {"_id": "a", "title": "Ithaca"},
            {"_id": "b", "title": "POEM Candles"},
        ]
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=listing)),
            base_url="https://api.test",
        )
        remote = RemoteApiAdapter("https://api.test", client=client)

        store = connect_store(":memory:")
        store.insert_translation({"title": "Ithaca", "pdf_data": b"%PDF"})
        store.insert_translation({"title": "POEM Candles", "pdf_data": b"%PDF"})
        direct = DirectStoreAdapter(store, token_secret="s")

        selection = BackendSelection(BackendId.REMOTE_API, direct_store_ready=True)
        dispatcher = Dispatcher(selection, {BackendId.REMOTE_API: remote, BackendId.DIRECT_STORE: direct})

        remote_titles = [t.title for t in await dispatcher.list_translations()]
        remote_docs = [t.title for t in await dispatcher.list_poem_documents()]
        dispatcher.switch(BackendId.DIRECT_STORE)
        store_titles = [t.title for t in await dispatcher.list_translations()]
        store_docs = [t.title for t in await dispatcher.list_poem_documents()]

        assert remote_titles == store_titles == ["Ithaca"]
        assert remote_docs == store_docs == ["POEM Candles"]

        await client.aclose()
        store.close()


class TestBuildDispatcher:
    """Tests for init_dispatcher wiring."""

    def _settings(self, store_path):
        return Settings(
            app_env="test",
            remote_api_url="https://api.test",
            remote_api_token="",
            store_path=store_path,
            preferences_path=":memory:",
            default_backend="direct_store",
            token_secret="secret",
            request_timeout=5.0,
            log_level="DEBUG",
        )

    def test_store_configured(self):
        prefs = PreferenceStore.open(":memory:")
        dispatcher = build_dispatcher(self._settings(":memory:"), prefs)
        assert dispatcher.backend is BackendId.DIRECT_STORE
        assert isinstance(dispatcher.adapter(BackendId.DIRECT_STORE), DirectStoreAdapter)
        assert isinstance(dispatcher.adapter(BackendId.REMOTE_API), RemoteApiAdapter)

    def test_store_not_configured(self):
        dispatcher = build_dispatcher(self._settings("YOUR_STORE_PATH"))
        assert dispatcher.backend is BackendId.REMOTE_API
        with pytest.raises(BackendUnreachableError):
            dispatcher.adapter(BackendId.DIRECT_STORE)

    @pytest.mark.asyncio
    async def test_init_and_shutdown(self):
        dispatcher = dispatcher_module.init_dispatcher(self._settings(":memory:"))
        assert dispatcher_module.get_dispatcher() is dispatcher

        dispatcher.switch(BackendId.REMOTE_API)
        assert dispatcher_module._preferences.get(PREFERRED_BACKEND_KEY) == "remote_api"

        await dispatcher_module.shutdown_dispatcher()
        with pytest.raises(AssertionError):
            dispatcher_module.get_dispatcher()


class TestDraftsPassThrough:
    """Tests that drafts reach adapters unchanged."""

    @pytest.mark.asyncio
    async def test_create_poem_forwards_draft(self, dispatcher, adapters):
        remote = adapters[BackendId.REMOTE_API]
        remote.create_poem = AsyncMock(return_value=Poem(id="p1", title="T"))
        draft = PoemDraft(title="T")
        await dispatcher.create_poem(draft)
        remote.create_poem.assert_awaited_once_with(draft)
