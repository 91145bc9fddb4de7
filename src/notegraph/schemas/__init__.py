"""Pydantic schemas for knowledge graph inputs and results."""

from notegraph.schemas.memory_url import MemoryUrl, normalize_memory_url
from notegraph.schemas.response import (
    EntitySummary,
    ObservationResponse,
    RelationResponse,
    WriteResult,
)
from notegraph.schemas.search import SearchQuery, SearchResult

__all__ = [
    "MemoryUrl",
    "normalize_memory_url",
    "EntitySummary",
    "ObservationResponse",
    "RelationResponse",
    "WriteResult",
    "SearchQuery",
    "SearchResult",
]
