"""Pydantic models for inbound documents and their chunks.

Hierarchy:
  ScopeFilter : tenant scope (teamId, organizationId) threaded through every store and query.
  Document    : an inbound document, exactly as received; validated by the ingestion service.
  Chunk       : a bounded, overlapping slice of a Document, the unit of embedding and retrieval.
"""

from pydantic import BaseModel


class ScopeFilter(BaseModel):
    """Tenant scope used to isolate data across customers."""

    team_id: str | None = None
    organization_id: str | None = None

    def as_filter(self) -> dict[str, str]:
        """Returns equality predicates on index metadata for every scope field that is set.

        Returns:
            dict[str, str]: e.g. {"teamId": "t1", "organizationId": "o1"}
        """
        predicates: dict[str, str] = {}
        if self.team_id:
            predicates["teamId"] = self.team_id
        if self.organization_id:
            predicates["organizationId"] = self.organization_id
        return predicates


class Document(BaseModel):
    """A document as received for ingestion.

    Every field is optional at the type level so that validation can report
    all missing fields at once. The document itself is never persisted, only
    its chunks are.
    """

    id: str | None = None
    text: str | None = None
    title: str | None = None
    document_id: str | None = None
    team_id: str | None = None
    organization_id: str | None = None
    source_metadata: dict[str, str] = {}

    @property
    def resolved_document_id(self) -> str | None:
        """The logical document id: documentId when given, the record id otherwise."""
        return self.document_id or self.id


class Chunk(BaseModel):
    """A chunk derived deterministically from a Document. Indices are contiguous from 0."""

    chunk_id: str
    document_id: str
    index: int
    total_chunks: int
    text: str
    byte_length: int

    @staticmethod
    def make_chunk_id(record_id: str, index: int) -> str:
        """Builds the stable chunk id, so re-ingesting a document overwrites its chunks."""
        return f"{record_id}-chunk-{index}"
