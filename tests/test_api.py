from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from server.api_server import create_app
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.exceptions import ExternalServiceError

DOCUMENT = {"id": "doc1", "text": "A" * 50, "title": "T", "teamId": "t1", "organizationId": "o1"}


@pytest.fixture
def client(helper_config, embed_client, rag_client, llm_client, pipeline_config):
    app = create_app(
        helper_config=helper_config,
        embed_client=embed_client,
        rag_client=rag_client,
        llm_client=llm_client,
        pipeline_config=pipeline_config,
    )
    with TestClient(app) as test_client:
        yield test_client


def test_startup_boots_and_prepares_clients(client, embed_client, rag_client, llm_client):
    for mock in (embed_client, rag_client, llm_client):
        mock.boot.assert_awaited_once()
        mock.do_healthcheck.assert_awaited()
    rag_client.do_prepare.assert_awaited_once()


def test_root_reports_working(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.text == "working"


def test_health(client, llm_client):
    llm_client.do_healthcheck = AsyncMock(side_effect=ExternalServiceError("down"))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "embed": "ok", "rag": "ok", "llm": "unreachable"}


def test_embedding_single_chunk(client, embed_client, rag_client):
    response = client.post("/embedding", json={**DOCUMENT, "maxChunkSize": 1000})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Embedding stored successfully!"
    assert body["documentId"] == "doc1"
    assert body["chunkCount"] == 1
    assert body["perChunk"] == [{"chunkId": "doc1-chunk-0", "chunkIndex": 0, "chunkSize": 50}]
    assert embed_client.embed_text.await_count == 1
    assert rag_client.do_upsert.await_count == 1
    (records,), _ = rag_client.do_upsert.await_args
    assert records[0].metadata["chunkIndex"] == 0
    assert records[0].metadata["chunkTotal"] == 1


def test_embedding_long_document(client, embed_client, rag_client):
    response = client.post(
        "/embedding",
        json={**DOCUMENT, "text": "A" * 2500, "maxChunkSize": 1000, "overlap": 100},
    )

    assert response.status_code == 200
    assert response.json()["chunkCount"] == 3
    assert embed_client.embed_text.await_count == 3
    assert rag_client.do_upsert.await_count == 3


def test_numeric_ids_are_accepted(client, index):
    response = client.post("/embedding", json={**DOCUMENT, "id": 42})

    assert response.status_code == 200
    assert "42-chunk-0" in index.records


def test_missing_fields_return_400(client, embed_client):
    response = client.post("/embedding", json={"id": "doc1", "teamId": "t1"})

    assert response.status_code == 400
    body = response.json()
    assert body["missingFields"] == {
        "text": True,
        "id": False,
        "title": True,
        "teamId": False,
        "organizationId": True,
    }
    assert "error" in body
    embed_client.embed_text.assert_not_awaited()


def test_malformed_body_returns_400(client):
    response = client.post("/search", json={"query": "x", "teamId": "t1", "organizationId": "o1", "topK": "many"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body."


def test_provider_failure_returns_500(client, embed_client):
    embed_client.embed_text = AsyncMock(side_effect=ExternalServiceError("down", details="connection refused"))

    response = client.post("/embedding", json=DOCUMENT)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to generate or store embedding."
    assert "connection refused" in body["details"]


def test_batch_ingest(client, index):
    payload = {
        "source": "wiki",
        "sourceType": "notion",
        "teamId": "t1",
        "organizationId": "o1",
        "documents": [
            {"id": "p1", "documentId": "page-1", "title": "One", "text": "first page"},
            {"id": "p2", "title": "Two", "text": "second page"},
        ],
    }

    for route in ("/ingest", "/chunk-and-embed"):
        response = client.post(route, json=payload)

        assert response.status_code == 200
        body = response.json()
        assert (body["total"], body["succeeded"], body["failed"]) == (2, 1, 1)
        assert body["sourceType"] == "notion"
        assert body["results"][0]["status"] == "ok"
        assert body["results"][1]["missingFields"]["documentId"] is True
    assert list(index.records) == ["p1-chunk-0"]


def test_search_returns_ranked_scoped_results(client, rag_client, llm_client):
    rag_client.do_query = AsyncMock(return_value=[
        SearchMatch(id="a-chunk-0", score=0.3, metadata={"text": "a", "teamId": "t1", "organizationId": "o1"}),
        SearchMatch(id="b-chunk-0", score=0.8, metadata={"text": "b", "teamId": "t1", "organizationId": "o1"}),
    ])

    response = client.post("/search", json={"query": "x", "teamId": "t1", "organizationId": "o1", "topK": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "x"
    assert body["answer"] == "Generated answer."
    assert body["total"] == 2
    assert [result["id"] for result in body["results"]] == ["b-chunk-0", "a-chunk-0"]
    assert [result["score"] for result in body["results"]] == [0.8, 0.3]
    for result in body["results"]:
        assert result["teamId"] == "t1"
        assert result["organizationId"] == "o1"
    assert rag_client.do_query.await_args.kwargs["top_k"] == 2


def test_search_without_matches(client):
    response = client.post("/search", json={"query": "x", "teamId": "t1", "organizationId": "o1"})

    assert response.status_code == 200
    assert response.json()["answer"] == "No relevant information found."
    assert response.json()["results"] == []


def test_api_key_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setenv("APP_API_KEY", "secret")

    assert client.post("/embedding", json=DOCUMENT).status_code == 401
    assert client.post("/embedding", json=DOCUMENT, headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.post("/embedding", json=DOCUMENT, headers={"X-API-Key": "secret"}).status_code == 200
    assert client.get("/").status_code == 200


def test_malformed_index_response_returns_json_500(client, rag_client, monkeypatch):
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant:6333")
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "chunks")
    qdrant = RAGClientQdrant(client.app.state.helper_config)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["unexpected"])

    async def boot_qdrant():
        await qdrant.boot(transport=httpx.MockTransport(handler))

    client.portal.call(boot_qdrant)
    rag_client.do_query = AsyncMock(side_effect=qdrant.do_query)

    response = client.post("/search", json={"query": "x", "teamId": "t1", "organizationId": "o1"})

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["error"] == "Failed to process search query."
    client.portal.call(qdrant.close)
