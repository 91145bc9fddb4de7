"""Knowledge graph records: entities, observations, and relations.

These live in memory only. The markdown file is the source of truth, every
record here is rebuilt from it on reparse.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

DEFAULT_RELATION_TYPE = "relates_to"


@dataclass
class Observation:
    """A categorized, tagged fact about an entity."""

    category: str
    content: str
    tags: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"[{self.category}] {self.content}"


@dataclass(eq=False)
class Relation:
    """A directed edge from the owning entity to a target named by title.

    A relation is dangling while ``to_id`` is None. Relations compare by
    identity because the link resolver indexes the same objects that the
    owning entity holds.
    """

    relation_type: str
    target: str
    from_id: Optional[int] = None
    to_id: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.to_id is not None

    def __repr__(self) -> str:
        state = f"to_id={self.to_id}" if self.is_resolved else "dangling"
        return (
            f"Relation(from_id={self.from_id}, {self.relation_type} -> [[{self.target}]], {state})"
        )


@dataclass
class Entity:
    """
    Core entity in the knowledge graph.

    Each entity:
    - Has a process-stable id and a unique permalink
    - Is backed by exactly one markdown file
    - Owns its observations and outgoing relations
    """

    id: int
    title: str
    permalink: str
    file_path: str
    entity_type: str = "note"
    content: str = ""
    body: str = ""
    observations: List[Observation] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    checksum: Optional[str] = None

    def __repr__(self) -> str:
        return f"Entity(id={self.id}, permalink={self.permalink!r}, title={self.title!r})"
