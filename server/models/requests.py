"""Inbound request bodies.

Wire keys are camelCase. Every field a service validates is optional here, so
a missing field reaches the service and is reported together with all other
missing fields instead of failing body parsing.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)


class EmbeddingRequest(CamelModel):
    id: str | None = None
    text: str | None = None
    title: str | None = None
    document_id: str | None = None
    team_id: str | None = None
    organization_id: str | None = None
    max_chunk_size: int | None = None
    overlap: int | None = None
    source_metadata: dict[str, str] = {}


class BatchDocumentItem(CamelModel):
    id: str | None = None
    text: str | None = None
    title: str | None = None
    document_id: str | None = None
    source_metadata: dict[str, str] = {}


class BatchIngestRequest(CamelModel):
    source: str | None = None
    source_type: str | None = None
    team_id: str | None = None
    organization_id: str | None = None
    documents: list[BatchDocumentItem] | None = None
    max_chunk_size: int | None = None
    overlap: int | None = None


class SearchRequest(CamelModel):
    query: str | None = None
    team_id: str | None = None
    organization_id: str | None = None
    top_k: int | None = None
    generate_answer: bool = True
