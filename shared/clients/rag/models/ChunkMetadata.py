"""ChunkMetadata model: metadata stored alongside each chunk vector."""

from pydantic import BaseModel

RESERVED_KEYS = {
    "text",
    "documentId",
    "title",
    "teamId",
    "organizationId",
    "chunkIndex",
    "chunkTotal",
    "createdAt",
    "source",
    "sourceType",
}


class ChunkMetadata(BaseModel):
    """Metadata stored with every chunk vector in the index.

    Field names follow the wire format (camelCase) because they are written
    to and filtered on in the index as-is. teamId and organizationId are the
    tenant scope; queries filter on them with equality predicates.

    Attributes:
        text:           Chunk text, returned as the source excerpt on retrieval.
        documentId:     Logical document id the chunk belongs to.
        title:          Human-readable document title.
        teamId:         Tenant scope, team part.
        organizationId: Tenant scope, organization part.
        chunkIndex:     Zero-based position of this chunk within the document.
        chunkTotal:     Number of chunks the document was split into.
        createdAt:      ISO-8601 UTC timestamp of the ingestion.
        source:         Batch source identifier, if ingested through a batch.
        sourceType:     Batch source type, if ingested through a batch.
    """

    text: str
    documentId: str
    title: str | None = None
    teamId: str | None = None
    organizationId: str | None = None
    chunkIndex: int
    chunkTotal: int
    createdAt: str
    source: str | None = None
    sourceType: str | None = None

    def to_index_metadata(self, extra: dict[str, str] | None = None) -> dict[str, str | int]:
        """Flatten into the index metadata map.

        Unset optional fields are dropped (indexes reject null values) and
        extra source metadata never overrides a reserved key.

        Args:
            extra (dict[str, str] | None): Caller-supplied source metadata.

        Returns:
            dict[str, str | int]: The metadata to upsert.
        """
        metadata: dict[str, str | int] = {
            key: value for key, value in (extra or {}).items() if key not in RESERVED_KEYS and value is not None
        }
        metadata.update(self.model_dump(exclude_none=True))
        return metadata
