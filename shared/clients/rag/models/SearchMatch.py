"""SearchMatch model: one nearest-neighbour hit returned by the index."""

from typing import Any

from pydantic import BaseModel


class SearchMatch(BaseModel):
    """A ranked match produced per query. Never persisted.

    Attributes:
        id:       Record id of the matched chunk.
        score:    Similarity score as reported by the index; range depends on the metric.
        metadata: Metadata stored with the record.
    """

    id: str
    score: float
    metadata: dict[str, Any] = {}
