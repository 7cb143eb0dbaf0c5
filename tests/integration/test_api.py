"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ragdocs.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from ragdocs.api.routes import router as api_router
from ragdocs.providers.store.memory_store import InMemoryDocumentStore
from ragdocs.services.document_service import DocumentService
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.retrieval.search_service import SearchService
from tests.conftest import topic_paragraph

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ALICE = {"X-Owner-Id": "alice"}
_BOB = {"X-Owner-Id": "bob"}


def _text(*topics: str) -> bytes:
    return "\n\n".join(topic_paragraph(t) for t in topics).encode()


def _upload(client: TestClient, data: bytes, name: str = "notes.txt", mime: str = "text/plain", headers=None, **form):
    return client.post(
        "/api/v1/documents",
        files={"file": (name, data, mime)},
        data={k: str(v) for k, v in form.items()},
        headers=headers or _ALICE,
    )


@pytest.fixture
def client(
    document_service: DocumentService,
    search_service: SearchService,
    embedding_service: EmbeddingService,
    memory_store: InMemoryDocumentStore,
) -> TestClient:
    """A TestClient over the API router wired to in-memory services."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)
    app.state.document_service = document_service
    app.state.search_service = search_service
    app.state.embedding_service = embedding_service
    app.state.store = memory_store
    return TestClient(app)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_creates_document(self, client: TestClient) -> None:
        response = _upload(client, _text("python", "music", "travel"), title="My notes")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["deduplicated"] is False
        assert body["document"]["title"] == "My notes"
        assert body["document"]["status"] == "completed"
        assert body["chunk_count"] == body["document"]["chunk_count"] > 0
        assert body["extraction"]["file_type"] == "text/plain"
        assert body["extraction"]["word_count"] > 0
        assert body["extraction"]["truncated"] is False

    def test_reupload_is_deduplicated(self, client: TestClient) -> None:
        first = _upload(client, _text("python", "music")).json()
        second = _upload(client, _text("python", "music"), name="again.txt")

        assert second.status_code == 200
        assert second.json()["deduplicated"] is True
        assert second.json()["extraction"] is None
        assert second.json()["document"]["id"] == first["document"]["id"]

    def test_octet_stream_falls_back_to_extension(self, client: TestClient) -> None:
        response = _upload(client, _text("cooking"), name="recipe.txt", mime="application/octet-stream")

        assert response.status_code == 201
        assert response.json()["document"]["file_type"] == "text/plain"

    def test_unsupported_type_is_415(self, client: TestClient) -> None:
        response = _upload(client, b"\x89PNG....", name="image.png", mime="image/png")

        assert response.status_code == 415
        assert response.json()["error"] == "UnsupportedFormatError"

    def test_failed_pipeline_still_returns_document(self, client: TestClient) -> None:
        response = _upload(client, b"   \n  ")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is False
        assert body["document"]["status"] == "failed"
        assert body["error"]

    def test_missing_owner_header_is_422(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/documents", files={"file": ("notes.txt", _text("python"), "text/plain")}
        )
        assert response.status_code == 422


class TestDocumentEndpoints:
    @pytest.fixture
    def document_id(self, client: TestClient) -> str:
        return _upload(client, _text("python", "finance", "cooking", "music", "travel", "python")).json()["document"]["id"]

    def test_list(self, client: TestClient, document_id: str) -> None:
        _upload(client, _text("travel"), name="trip.txt")

        body = client.get("/api/v1/documents", params={"limit": 1}, headers=_ALICE).json()

        assert body["total"] == 2
        assert body["total_pages"] == 2
        assert len(body["documents"]) == 1

        other = client.get("/api/v1/documents", headers=_BOB).json()
        assert other["total"] == 0

    def test_list_rejects_oversized_limit(self, client: TestClient) -> None:
        assert client.get("/api/v1/documents", params={"limit": 101}, headers=_ALICE).status_code == 422

    def test_get_and_owner_scope(self, client: TestClient, document_id: str) -> None:
        assert client.get(f"/api/v1/documents/{document_id}", headers=_ALICE).status_code == 200

        response = client.get(f"/api/v1/documents/{document_id}", headers=_BOB)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_rename(self, client: TestClient, document_id: str) -> None:
        response = client.patch(
            f"/api/v1/documents/{document_id}", json={"title": "  Renamed  "}, headers=_ALICE
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"

        blank = client.patch(f"/api/v1/documents/{document_id}", json={"title": "   "}, headers=_ALICE)
        assert blank.status_code == 422

    def test_delete(self, client: TestClient, document_id: str) -> None:
        assert client.delete(f"/api/v1/documents/{document_id}", headers=_ALICE).status_code == 204
        assert client.get(f"/api/v1/documents/{document_id}", headers=_ALICE).status_code == 404
        assert client.delete(f"/api/v1/documents/{document_id}", headers=_ALICE).status_code == 404

    def test_chunks(self, client: TestClient, document_id: str) -> None:
        body = client.get(
            f"/api/v1/documents/{document_id}/chunks", params={"limit": 1, "offset": 1}, headers=_ALICE
        ).json()

        assert body["total_chunks"] >= 2
        assert [c["chunk_index"] for c in body["chunks"]] == [1]
        assert body["chunks"][0]["has_embedding"] is True
        assert "embedding" not in body["chunks"][0]

    def test_stats(self, client: TestClient, document_id: str) -> None:
        body = client.get("/api/v1/documents/stats", headers=_ALICE).json()

        assert body["total_documents"] == 1
        assert body["status_counts"] == {"completed": 1}

    def test_reprocess(self, client: TestClient) -> None:
        document_id = _upload(client, _text("music", "travel"), generate_embeddings=False).json()["document"]["id"]

        body = client.post(
            "/api/v1/documents/reprocess",
            json={"document_ids": [document_id, "missing"]},
            headers=_ALICE,
        ).json()

        assert [r["success"] for r in body["results"]] == [True, False]
        assert body["total_updated_chunks"] == body["results"][0]["updated_chunks"] > 0

    def test_similar(self, client: TestClient, document_id: str) -> None:
        _upload(client, _text("python", "finance", "cooking"), name="close.txt")

        body = client.get(f"/api/v1/documents/{document_id}/similar", headers=_ALICE).json()

        assert body["document_id"] == document_id
        assert all(s["document_id"] != document_id for s in body["similar_documents"])


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearchEndpoints:
    @pytest.fixture(autouse=True)
    def _library(self, client: TestClient) -> None:
        _upload(client, _text("python", "python", "python"), name="py.txt")
        _upload(client, _text("finance", "finance", "finance"), name="fin.txt")

    def test_semantic(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/search/semantic", json={"query": "python"}, headers=_ALICE
        ).json()

        assert body["search_type"] == "semantic"
        assert body["total_results"] > 0
        assert {r["document_title"] for r in body["results"]} == {"py"}

    def test_hybrid(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/search/hybrid", json={"query": "python", "threshold": 0.0}, headers=_ALICE
        ).json()

        assert body["search_type"] == "hybrid"
        top = body["results"][0]
        assert top["document_title"] == "py"
        assert top["keyword_score"] > 0

    def test_context(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/search/context", json={"query": "finance", "max_chunks": 2}, headers=_ALICE
        ).json()

        assert body["chunk_count"] == len(body["sources"]) <= 2
        assert 0 < body["total_characters"] <= len(body["context"])
        assert all(s["document_title"] == "fin" for s in body["sources"])

    def test_blank_query_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/search/semantic", json={"query": ""}, headers=_ALICE)
        assert response.status_code == 422

    def test_other_owner_sees_nothing(self, client: TestClient) -> None:
        body = client.post(
            "/api/v1/search/semantic", json={"query": "python", "threshold": 0.0}, headers=_BOB
        ).json()
        assert body["results"] == []


# ---------------------------------------------------------------------------
# Health and middleware
# ---------------------------------------------------------------------------


class TestHealth:
    def test_shallow(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"]["store"] == "memory_store"
        assert body["providers"]["embedding"]["provider"] == "fake_embedding"

    def test_deep_health_check(self, client: TestClient, fake_provider) -> None:
        body = client.get("/api/v1/health", params={"deep": True}).json()

        assert body["providers"]["embedding"]["status"] == "healthy"
        assert fake_provider.calls == [["health check"]]

    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

        generated = client.get("/api/v1/health")
        assert generated.headers["X-Request-ID"]
