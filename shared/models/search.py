"""Pydantic models for retrieval results."""

from typing import Any

from pydantic import BaseModel


class SearchSource(BaseModel):
    """A retrieved chunk, returned alongside the answer so callers can audit grounding."""

    id: str
    score: float
    text: str | None = None
    document_id: str | None = None
    title: str | None = None
    team_id: str | None = None
    organization_id: str | None = None
    chunk_index: int | None = None
    chunk_total: int | None = None
    metadata: dict[str, Any] = {}


class AnswerResult(BaseModel):
    """Outcome of a query: the (optional) generated answer and the ranked sources."""

    answer: str | None = None
    sources: list[SearchSource]
