"""IndexRecord model: a vector and its metadata as written to the index."""

from pydantic import BaseModel


class IndexRecord(BaseModel):
    """A single record upserted into the vector index.

    Upserting a record whose id already exists replaces the stored vector
    and metadata (last write wins, enforced by the index provider).

    Attributes:
        id:       Stable record id, the chunk id for document chunks.
        vector:   Embedding of the chunk text; dimension is defined by the embedding model.
        metadata: Flat key/value map; values are strings, numbers or booleans.
    """

    id: str
    vector: list[float]
    metadata: dict[str, str | int | float | bool]
