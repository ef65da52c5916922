import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.clients.rag.pinecone.RAGClientPinecone import RAGClientPinecone
from shared.clients.rag.qdrant.RAGClientQdrant import RECORD_ID_KEY, RAGClientQdrant, make_point_id
from shared.exceptions import ExternalServiceError


class RecordingTransport:
    """Collects requests and answers them from a route -> (status, json) table."""

    def __init__(self, routes: dict[tuple[str, str], tuple[int, dict]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {"error": "not found"}))
        return httpx.Response(status, json=body)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


async def boot(client, routes) -> RecordingTransport:
    recorder = RecordingTransport(routes)
    await client.boot(transport=httpx.MockTransport(recorder))
    return recorder


RECORD = IndexRecord(id="doc1-chunk-0", vector=[0.1, 0.2], metadata={"teamId": "t1", "chunkIndex": 0})


##########################################
################ PINECONE ################
##########################################

@pytest.fixture
def pinecone_env(monkeypatch):
    monkeypatch.setenv("RAG_PINECONE_API_KEY", "pc-key")
    monkeypatch.setenv("RAG_PINECONE_HOST", "my-index-abc.svc.pinecone.io")
    monkeypatch.setenv("RAG_PINECONE_INDEX", "my-index")
    monkeypatch.setenv("RAG_PINECONE_NAMESPACE", "docs")


@pytest.mark.asyncio
async def test_pinecone_upsert_payload(helper_config, pinecone_env):
    client = RAGClientPinecone(helper_config)
    recorder = await boot(client, {("POST", "/vectors/upsert"): (200, {"upsertedCount": 1})})

    await client.do_upsert([RECORD])

    request = recorder.requests[0]
    assert str(request.url) == "https://my-index-abc.svc.pinecone.io/vectors/upsert"
    assert request.headers["Api-Key"] == "pc-key"
    assert request.headers["X-Pinecone-API-Version"] == "2024-07"
    assert recorder.body() == {
        "vectors": [{"id": "doc1-chunk-0", "values": [0.1, 0.2], "metadata": {"teamId": "t1", "chunkIndex": 0}}],
        "namespace": "docs",
    }
    await client.close()


@pytest.mark.asyncio
async def test_pinecone_query(helper_config, pinecone_env):
    client = RAGClientPinecone(helper_config)
    recorder = await boot(client, {
        ("POST", "/query"): (200, {"matches": [{"id": "doc1-chunk-0", "score": 0.91, "metadata": {"text": "hi"}}]}),
    })

    matches = await client.do_query([0.1, 0.2], top_k=3, filters={"teamId": "t1", "organizationId": "o1"})

    assert recorder.body() == {
        "vector": [0.1, 0.2],
        "topK": 3,
        "includeMetadata": True,
        "includeValues": False,
        "filter": {"teamId": {"$eq": "t1"}, "organizationId": {"$eq": "o1"}},
        "namespace": "docs",
    }
    assert matches[0].id == "doc1-chunk-0"
    assert matches[0].score == 0.91
    assert matches[0].metadata == {"text": "hi"}
    await client.close()


@pytest.mark.asyncio
async def test_pinecone_describe_uses_control_plane(helper_config, pinecone_env):
    client = RAGClientPinecone(helper_config)
    recorder = await boot(client, {("GET", "/indexes/my-index"): (200, {"dimension": 1536})})

    assert await client.do_describe_index() == {"dimension": 1536}
    assert recorder.requests[0].url.host == "api.pinecone.io"
    await client.close()


@pytest.mark.asyncio
async def test_pinecone_error_status_raises(helper_config, pinecone_env):
    client = RAGClientPinecone(helper_config)
    await boot(client, {("POST", "/vectors/upsert"): (400, {"message": "dimension mismatch"})})

    with pytest.raises(ExternalServiceError) as exc_info:
        await client.do_upsert([RECORD])

    assert "dimension mismatch" in exc_info.value.details
    assert exc_info.value.service == "rag"
    await client.close()


def test_pinecone_requires_credentials(helper_config, monkeypatch):
    monkeypatch.delenv("RAG_PINECONE_API_KEY", raising=False)
    monkeypatch.setenv("RAG_PINECONE_HOST", "host")
    monkeypatch.setenv("RAG_PINECONE_INDEX", "idx")

    with pytest.raises(ValueError):
        RAGClientPinecone(helper_config)


##########################################
################# QDRANT #################
##########################################

@pytest.fixture
def qdrant_env(monkeypatch):
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant:6333")
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "chunks")


@pytest.mark.asyncio
async def test_qdrant_upsert_uses_deterministic_point_ids(helper_config, qdrant_env):
    client = RAGClientQdrant(helper_config)
    recorder = await boot(client, {("PUT", "/collections/chunks/points"): (200, {"status": "ok"})})

    await client.do_upsert([RECORD])

    point = recorder.body()["points"][0]
    assert point["id"] == make_point_id("doc1-chunk-0")
    assert point["payload"][RECORD_ID_KEY] == "doc1-chunk-0"
    assert make_point_id("doc1-chunk-0") == make_point_id("doc1-chunk-0")
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_query_filters_and_restores_record_ids(helper_config, qdrant_env):
    client = RAGClientQdrant(helper_config)
    recorder = await boot(client, {
        ("POST", "/collections/chunks/points/search"): (200, {"result": [
            {"id": make_point_id("doc1-chunk-0"), "score": 0.7, "payload": {RECORD_ID_KEY: "doc1-chunk-0", "text": "hi"}},
        ]}),
    })

    matches = await client.do_query([0.1, 0.2], top_k=2, filters={"teamId": "t1"})

    assert recorder.body()["filter"] == {"must": [{"key": "teamId", "match": {"value": "t1"}}]}
    assert recorder.body()["limit"] == 2
    assert matches[0].id == "doc1-chunk-0"
    assert matches[0].metadata == {"text": "hi"}
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_prepare_creates_missing_collection(helper_config, qdrant_env):
    client = RAGClientQdrant(helper_config)
    recorder = await boot(client, {
        ("GET", "/collections/chunks/exists"): (200, {"result": {"exists": False}}),
        ("PUT", "/collections/chunks"): (200, {"result": True}),
    })

    async def vector_size() -> int:
        return 768

    await client.do_prepare(vector_size)

    assert recorder.body() == {"vectors": {"size": 768, "distance": "Cosine"}}
    await client.close()


##########################################
############### EMBEDDINGS ###############
##########################################

@pytest.mark.asyncio
async def test_openai_embeddings_sorted_by_index(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "text-embedding-3-small")
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    client = EmbedClientOpenai(helper_config)
    recorder = await boot(client, {
        ("POST", "/v1/embeddings"): (200, {"data": [
            {"index": 1, "embedding": [2.0]},
            {"index": 0, "embedding": [1.0]},
        ]}),
    })

    vectors = await client.do_embed(["first", "second"])

    assert vectors == [[1.0], [2.0]]
    assert recorder.body() == {"model": "text-embedding-3-small", "input": ["first", "second"]}
    assert recorder.requests[0].headers["Authorization"] == "Bearer sk-test"
    await client.close()


@pytest.mark.asyncio
async def test_ollama_embedding_and_vector_size(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "nomic-embed-text")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
    client = EmbedClientOllama(helper_config)
    await boot(client, {
        ("POST", "/api/embed"): (200, {"embeddings": [[0.5, 0.5]]}),
        ("POST", "/api/show"): (200, {"model_info": {"nomic-bert.embedding_length": 768}}),
    })

    assert await client.embed_text("hello") == [0.5, 0.5]
    assert await client.do_fetch_embedding_vector_size() == 768
    await client.close()


@pytest.mark.asyncio
async def test_malformed_embedding_response(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "nomic-embed-text")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
    client = EmbedClientOllama(helper_config)
    await boot(client, {("POST", "/api/embed"): (200, {"unexpected": True})})

    with pytest.raises(ExternalServiceError):
        await client.embed_text("hello")
    await client.close()


@pytest.mark.asyncio
async def test_request_before_boot_fails(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "nomic-embed-text")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama:11434")
    client = EmbedClientOllama(helper_config)

    with pytest.raises(RuntimeError):
        await client.embed_text("hello")


##########################################
############### GENERATION ###############
##########################################

@pytest.mark.asyncio
async def test_openai_chat(helper_config, monkeypatch):
    monkeypatch.setenv("LLM_CHAT_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    client = LLMClientOpenai(helper_config)
    recorder = await boot(client, {
        ("POST", "/v1/chat/completions"): (200, {"choices": [{"message": {"role": "assistant", "content": "42"}}]}),
    })

    answer = await client.do_generate("Be brief.", [{"role": "user", "content": "?"}])

    assert answer == "42"
    body = recorder.body()
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"][0] == {"role": "system", "content": "Be brief."}
    assert body["messages"][1] == {"role": "user", "content": "?"}
    await client.close()


@pytest.mark.asyncio
async def test_ollama_chat_is_not_streamed(helper_config, monkeypatch):
    monkeypatch.setenv("LLM_CHAT_MODEL", "llama3")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama:11434")
    client = LLMClientOllama(helper_config)
    recorder = await boot(client, {("POST", "/api/chat"): (200, {"message": {"content": "hello"}})})

    assert await client.do_chat([{"role": "user", "content": "hi"}]) == "hello"
    assert recorder.body()["stream"] is False
    await client.close()


##########################################
################ MANAGERS ################
##########################################

def test_managers_select_configured_engines(helper_config, monkeypatch, qdrant_env):
    monkeypatch.setenv("EMBED_ENGINE", "OpenAI")
    monkeypatch.setenv("EMBED_MODEL", "text-embedding-3-small")
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("RAG_ENGINE", "qdrant")

    assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientOpenai)
    assert isinstance(RAGClientManager(helper_config).get_client(), RAGClientQdrant)
    assert LLMClientManager(helper_config).get_client() is None


def test_unknown_engine_is_rejected(helper_config, monkeypatch):
    monkeypatch.setenv("RAG_ENGINE", "faiss")

    with pytest.raises(ValueError):
        RAGClientManager(helper_config)


##########################################
########### MALFORMED RESPONSES ##########
##########################################

@pytest.mark.asyncio
async def test_qdrant_query_with_unexpected_shape(helper_config, qdrant_env):
    client = RAGClientQdrant(helper_config)
    await boot(client, {("POST", "/collections/chunks/points/search"): (200, ["unexpected"])})

    with pytest.raises(ExternalServiceError) as exc_info:
        await client.do_query([0.1, 0.2], top_k=2)

    assert exc_info.value.service == "rag"
    await client.close()


@pytest.mark.asyncio
async def test_openai_embeddings_with_unexpected_shape(helper_config, monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "text-embedding-3-small")
    monkeypatch.setenv("EMBED_OPENAI_API_KEY", "sk-test")
    client = EmbedClientOpenai(helper_config)
    await boot(client, {("POST", "/v1/embeddings"): (200, {"data": "not-a-list"})})

    with pytest.raises(ExternalServiceError):
        await client.embed_text("hello")
    await client.close()


@pytest.mark.asyncio
async def test_openai_chat_with_unexpected_shape(helper_config, monkeypatch):
    monkeypatch.setenv("LLM_CHAT_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    client = LLMClientOpenai(helper_config)
    await boot(client, {("POST", "/v1/chat/completions"): (200, {"choices": ["oops"]})})

    with pytest.raises(ExternalServiceError):
        await client.do_chat([{"role": "user", "content": "?"}])
    await client.close()
