"""Response schemas returned by the knowledge graph."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from notegraph.models import Entity, Observation, Relation


class ObservationResponse(BaseModel):
    category: str
    content: str
    tags: List[str] = []

    @classmethod
    def from_model(cls, observation: Observation) -> "ObservationResponse":
        return cls(
            category=observation.category,
            content=observation.content,
            tags=list(observation.tags),
        )


class RelationResponse(BaseModel):
    """A relation as authored, with its resolution state."""

    relation_type: str
    target: str
    to_id: Optional[int] = None
    resolved: bool = False

    @classmethod
    def from_model(cls, relation: Relation) -> "RelationResponse":
        return cls(
            relation_type=relation.relation_type,
            target=relation.target,
            to_id=relation.to_id,
            resolved=relation.is_resolved,
        )


class EntitySummary(BaseModel):
    """Entity without its body, used in listings and context results."""

    id: int
    title: str
    permalink: str
    file_path: str
    entity_type: str
    tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    depth: Optional[int] = None

    @classmethod
    def from_model(cls, entity: Entity, depth: Optional[int] = None) -> "EntitySummary":
        return cls(
            id=entity.id,
            title=entity.title,
            permalink=entity.permalink,
            file_path=entity.file_path,
            entity_type=entity.entity_type,
            tags=list(entity.tags),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            depth=depth,
        )


class WriteResult(BaseModel):
    """Outcome of a successful write or update."""

    id: int
    title: str
    permalink: str
    file_path: str
    created: bool
    observations: List[ObservationResponse] = []
    relations: List[RelationResponse] = []

    @classmethod
    def from_model(cls, entity: Entity, created: bool) -> "WriteResult":
        return cls(
            id=entity.id,
            title=entity.title,
            permalink=entity.permalink,
            file_path=entity.file_path,
            created=created,
            observations=[ObservationResponse.from_model(o) for o in entity.observations],
            relations=[RelationResponse.from_model(r) for r in entity.relations],
        )
