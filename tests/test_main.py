"""Tests for the HTTP facade in main.py"""

import httpx
import pytest
from fastapi.testclient import TestClient

from poetry_bridge.core import dispatcher as dispatcher_module
from poetry_bridge.core.dispatcher import Dispatcher
from poetry_bridge.core.selection import BackendId, BackendSelection
from poetry_bridge.core.storage import connect_store
from poetry_bridge.main import app
from poetry_bridge.providers.direct_store import DirectStoreAdapter
from poetry_bridge.providers.remote_api import RemoteApiAdapter

PDF = b"%PDF-1.4 facade"


def remote_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/poetry":
        return httpx.Response(200, json=[{"_id": "r1", "title": "Remote poem"}])
    return httpx.Response(503, json={"msg": "down"})


@pytest.fixture
def store():
    s = connect_store(":memory:")
    yield s
    s.close()


@pytest.fixture
def client(store, monkeypatch):
    remote = RemoteApiAdapter(
        "https://api.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(remote_handler), base_url="https://api.test"),
    )
    direct = DirectStoreAdapter(store, token_secret="secret")
    selection = BackendSelection(BackendId.DIRECT_STORE, direct_store_ready=True)
    dispatcher = Dispatcher(selection, {BackendId.REMOTE_API: remote, BackendId.DIRECT_STORE: direct})
    monkeypatch.setattr(dispatcher_module, "_dispatcher", dispatcher)
    return TestClient(app)


class TestBackendRoutes:
    """Tests for the /api/backend routes."""

    def test_get_backend(self, client):
        data = client.get("/api/backend").json()
        assert data == {"backend": "direct_store", "directStoreReady": True, "generation": 0}

    def test_switch_backend(self, client):
        response = client.put("/api/backend", json={"backend": "remote_api"})
        assert response.status_code == 200
        assert response.json() == {"backend": "remote_api", "generation": 1}
        assert client.get("/api/poems").json()[0]["id"] == "r1"

    def test_unknown_backend(self, client):
        response = client.put("/api/backend", json={"backend": "mongo"})
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_failed"


class TestPoemRoutes:
    """Tests for the /api/poems routes."""

    def test_crud(self, client):
        created = client.post("/api/poems", json={"title": "Ithaca", "contentEnglish": "As you set out"})
        assert created.status_code == 201
        poem_id = created.json()["id"]

        assert client.post(f"/api/poems/{poem_id}/like").json() == {"likes": 1}
        comment = client.post(f"/api/poems/{poem_id}/comments", json={"author": "a", "text": "lovely"})
        assert comment.status_code == 201

        poem = client.get(f"/api/poems/{poem_id}").json()
        assert poem["title"] == "Ithaca"
        assert poem["likes"] == 1
        assert poem["comments"][0]["text"] == "lovely"

        updated = client.put(f"/api/poems/{poem_id}", json={"title": "Ithaka"})
        assert updated.json()["title"] == "Ithaka"

        assert client.delete(f"/api/poems/{poem_id}").json() == {"success": True}
        missing = client.get(f"/api/poems/{poem_id}")
        assert missing.status_code == 404
        assert missing.json() == {
            "detail": f"[direct_store] Poem {poem_id} not found",
            "backend": "direct_store",
            "kind": "not_found",
        }

    def test_blank_title(self, client):
        response = client.post("/api/poems", json={"title": " "})
        assert response.status_code == 400

    def test_unreachable_backend(self, client):
        client.put("/api/backend", json={"backend": "remote_api"})
        response = client.get("/api/poems/r1")
        assert response.status_code == 502
        assert response.json()["backend"] == "remote_api"


class TestTranslationRoutes:
    """Tests for the /api/translations routes."""

    def test_upload_list_and_document(self, client, store):
        created = client.post(
            "/api/translations",
            data={"title": "Ithaca", "date": "2024-05-01T00:00:00Z"},
            files={"pdf": ("ithaca.pdf", PDF, "application/pdf")},
        )
        assert created.status_code == 201
        translation_id = created.json()["id"]
        store.insert_translation({"title": "POEM Candles", "pdf_data": PDF})

        assert [t["title"] for t in client.get("/api/translations").json()] == ["Ithaca"]
        documents = client.get("/api/poem-documents").json()
        assert [d["displayTitle"] for d in documents] == ["Candles"]

        meta = client.get(f"/api/translations/{translation_id}").json()
        assert meta["hasDocument"] is True
        assert meta["createdAt"].startswith("2024-05-01")

        document = client.get(f"/api/translations/{translation_id}/document")
        assert document.status_code == 200
        assert document.headers["content-type"] == "application/pdf"
        assert document.content == PDF

    def test_update_title_only(self, client):
        created = client.post(
            "/api/translations",
            data={"title": "Ithaca"},
            files={"pdf": ("ithaca.pdf", PDF, "application/pdf")},
        )
        translation_id = created.json()["id"]
        updated = client.put(f"/api/translations/{translation_id}", data={"title": "Ithaka"})
        assert updated.json()["title"] == "Ithaka"
        assert updated.json()["hasDocument"] is True

    def test_legacy_payload_document(self, client, store):
        row = store.insert_translation({"title": "Legacy", "pdf_data": PDF.hex()})
        document = client.get(f"/api/translations/{row['id']}/document")
        assert document.content == PDF

    def test_unrecoverable_payload(self, client, store):
        row = store.insert_translation({"title": "Broken", "pdf_data": "not a real payload!!"})
        meta = client.get(f"/api/translations/{row['id']}").json()
        assert meta["empty"] is True

        response = client.get(f"/api/translations/{row['id']}/document")
        assert response.status_code == 422
        assert response.json()["kind"] == "decode_failed"

    def test_text_translation_renders_html(self, client, store):
        row = store.insert_translation({"title": "Text", "content": "Plain words"})
        response = client.get(f"/api/translations/{row['id']}/document")
        assert response.headers["content-type"].startswith("text/html")
        assert "Plain words" in response.text

    def test_delete(self, client, store):
        row = store.insert_translation({"title": "Gone", "pdf_data": PDF})
        assert client.delete(f"/api/translations/{row['id']}").status_code == 200
        assert client.delete(f"/api/translations/{row['id']}").status_code == 404


class TestAuthAndUsers:
    """Tests for the auth and user routes."""

    def test_signup_login_and_admin(self, client):
        signup = client.post(
            "/api/auth/signup", json={"username": "poet", "email": "poet@example.com", "password": "pw"}
        )
        assert signup.status_code == 201
        user_id = signup.json()["user"]["id"]
        assert "password" not in signup.json()["user"]

        duplicate = client.post(
            "/api/auth/signup", json={"username": "poet", "email": "poet@example.com", "password": "pw"}
        )
        assert duplicate.status_code == 409

        login = client.post("/api/auth/login", json={"email": "poet@example.com", "password": "pw"})
        assert login.status_code == 200
        assert login.json()["isAdmin"] is False

        assert client.put(f"/api/users/{user_id}/make-admin").status_code == 200
        assert client.get("/api/users").json()[0]["is_admin"] is True
        assert client.put(f"/api/users/{user_id}/remove-admin").status_code == 200
        assert client.delete(f"/api/users/{user_id}").status_code == 200
        assert client.get("/api/users").json() == []

    def test_bad_login(self, client):
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "pw"})
        assert response.status_code == 401
        assert response.json()["detail"] == "[direct_store] Invalid credentials"
