"""Pydantic models for ingestion outcomes."""

from pydantic import BaseModel


class ChunkReport(BaseModel):
    """Per-chunk line of an ingestion result."""

    chunk_id: str
    chunk_index: int
    chunk_size: int


class IngestResult(BaseModel):
    """Outcome of a successfully ingested document."""

    document_id: str
    title: str | None = None
    chunk_count: int
    per_chunk: list[ChunkReport]


class BatchItemResult(BaseModel):
    """Outcome of a single document inside a batch.

    status is "ok" or "error". Failed items carry an error summary and either
    the provider details or the missing-field map.
    """

    id: str | None = None
    document_id: str | None = None
    status: str
    chunk_count: int = 0
    per_chunk: list[ChunkReport] = []
    error: str | None = None
    details: str | None = None
    missing_fields: dict[str, bool] | None = None


class BatchIngestResult(BaseModel):
    """Itemized outcome of a batch ingestion."""

    source: str
    source_type: str
    total: int
    succeeded: int
    failed: int
    results: list[BatchItemResult]
