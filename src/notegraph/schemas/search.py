"""Search schemas for notegraph."""

from typing import List, Optional

from pydantic import BaseModel, Field


class SearchQuery(BaseModel):
    """Search query parameters."""

    text: str
    limit: int = Field(default=10, gt=0)
    entity_types: Optional[List[str]] = None


class SearchResult(BaseModel):
    """Search result item.

    ``score`` is the FTS5 bm25 rank: lower is a better match.
    """

    id: int
    permalink: str
    title: str
    file_path: str
    entity_type: str
    score: float
    excerpt: str = ""
