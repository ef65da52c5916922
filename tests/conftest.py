import logging
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.config import PipelineConfig


def fake_vector(text: str) -> list[float]:
    """Deterministic 3-dimensional stand-in for an embedding."""
    return [float(len(text)), float(sum(map(ord, text)) % 97), 1.0]


class InMemoryIndex:
    """Dictionary-backed vector index with last-write-wins upserts and equality filters."""

    def __init__(self) -> None:
        self.records: dict[str, IndexRecord] = {}

    async def upsert(self, records: list[IndexRecord]) -> None:
        for record in records:
            self.records[record.id] = record

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, str] | None = None,
        include_metadata: bool = True,
        include_values: bool = False,
    ) -> list[SearchMatch]:
        hits = [
            SearchMatch(
                id=record.id,
                score=sum(a * b for a, b in zip(vector, record.vector)),
                metadata=dict(record.metadata) if include_metadata else {},
            )
            for record in self.records.values()
            if all(record.metadata.get(key) == value for key, value in (filters or {}).items())
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("APP_API_KEY", "LLM_ENGINE", "APP_STARTUP_HEALTHCHECK", "APP_CORS_ORIGINS"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def logger() -> ColorLogger:
    return ColorLogger(logging.getLogger("embedding_bridge.tests"))


@pytest.fixture
def helper_config(logger) -> HelperConfig:
    return HelperConfig(logger=logger)


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def embed_client() -> MagicMock:
    client = MagicMock(spec=EmbedClientInterface)
    client.get_client_type.return_value = "embed"
    client.embed_text = AsyncMock(side_effect=fake_vector)
    client.do_fetch_embedding_vector_size = AsyncMock(return_value=3)
    client.do_healthcheck = AsyncMock(return_value=httpx.Response(200))
    client.boot = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def index() -> InMemoryIndex:
    return InMemoryIndex()


@pytest.fixture
def rag_client(index) -> MagicMock:
    client = MagicMock(spec=RAGClientInterface)
    client.get_client_type.return_value = "rag"
    client.get_index_name.return_value = "test-index"
    client.do_upsert = AsyncMock(side_effect=index.upsert)
    client.do_query = AsyncMock(side_effect=index.query)
    client.do_describe_index = AsyncMock(return_value={"dimension": 3, "metric": "cosine"})
    client.do_prepare = AsyncMock()
    client.do_healthcheck = AsyncMock(return_value=httpx.Response(200))
    client.boot = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def llm_client() -> MagicMock:
    client = MagicMock(spec=LLMClientInterface)
    client.get_client_type.return_value = "llm"
    client.do_generate = AsyncMock(return_value="Generated answer.")
    client.do_healthcheck = AsyncMock(return_value=httpx.Response(200))
    client.boot = AsyncMock()
    client.close = AsyncMock()
    return client
