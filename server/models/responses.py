from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChunkReportItem(CamelModel):
    chunk_id: str
    chunk_index: int
    chunk_size: int


class EmbeddingResponse(CamelModel):
    message: str
    document_id: str
    title: str | None
    chunk_count: int
    per_chunk: list[ChunkReportItem]


class BatchItem(CamelModel):
    id: str | None
    document_id: str | None
    status: str
    chunk_count: int
    per_chunk: list[ChunkReportItem]
    error: str | None = None
    details: str | None = None
    missing_fields: dict[str, bool] | None = None


class BatchIngestResponse(CamelModel):
    message: str
    source: str
    source_type: str
    total: int
    succeeded: int
    failed: int
    results: list[BatchItem]


class SearchResultItem(CamelModel):
    id: str
    score: float
    text: str | None
    document_id: str | None
    title: str | None
    team_id: str | None
    organization_id: str | None
    chunk_index: int | None
    chunk_total: int | None
    metadata: dict[str, Any]


class SearchResponse(CamelModel):
    query: str
    answer: str | None
    results: list[SearchResultItem]
    total: int


class HealthResponse(CamelModel):
    status: str
    embed: str
    rag: str
    llm: str
