"""Schema models for entity markdown files."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Observation(BaseModel):
    """An observation about an entity."""

    category: str
    content: str
    tags: List[str] = []


class Relation(BaseModel):
    """A relation between entities."""

    type: str
    target: str


class EntityFrontmatter(BaseModel):
    """Frontmatter fields for an entity, with raw metadata kept for passthrough."""

    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        return self.metadata.get("title")

    @property
    def type(self) -> Optional[str]:
        return self.metadata.get("type")

    @property
    def permalink(self) -> Optional[str]:
        return self.metadata.get("permalink")

    @property
    def tags(self) -> List[str]:
        return self.metadata.get("tags") or []


class EntityMarkdown(BaseModel):
    """Complete parsed note: frontmatter plus extracted semantic content."""

    frontmatter: EntityFrontmatter
    content: str = ""
    body: str = ""
    observations: List[Observation] = []
    relations: List[Relation] = []
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
