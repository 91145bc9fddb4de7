"""In-memory store of entities, the authoritative table of the knowledge graph."""

import itertools
from typing import Dict, List, Optional, Set

from loguru import logger

from notegraph.models import Entity
from notegraph.services.exceptions import PermalinkConflictError
from notegraph.utils import normalize_title


class EntityRepository:
    """Entities keyed by id, with secondary indices by permalink, title and file path.

    All mutation is synchronous, so under asyncio a ``put`` or ``delete`` is
    never observed half done.
    """

    def __init__(self):
        self._entities: Dict[int, Entity] = {}
        self._by_permalink: Dict[str, int] = {}
        self._by_title: Dict[str, Set[int]] = {}
        self._by_file_path: Dict[str, int] = {}
        self._sequence = itertools.count(1)

    def next_id(self) -> int:
        """Allocate a fresh entity id. Ids are never handed out twice."""
        return next(self._sequence)

    def put(self, entity: Entity) -> Optional[Entity]:
        """Create or fully replace an entity by id.

        Returns:
            The previous version, or None if the entity is new

        Raises:
            PermalinkConflictError: If another entity already holds the permalink
        """
        owner = self._by_permalink.get(entity.permalink)
        if owner is not None and owner != entity.id:
            raise PermalinkConflictError(
                f"Permalink '{entity.permalink}' already belongs to entity {owner}, "
                f"cannot assign it to entity {entity.id}"
            )

        previous = self._entities.get(entity.id)
        if previous:
            self._unindex(previous)

        self._entities[entity.id] = entity
        self._by_permalink[entity.permalink] = entity.id
        self._by_title.setdefault(normalize_title(entity.title), set()).add(entity.id)
        self._by_file_path[entity.file_path] = entity.id

        logger.debug(f"{'Replaced' if previous else 'Added'} entity {entity}")
        return previous

    def get(self, entity_id: int) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def get_by_permalink(self, permalink: str) -> Optional[Entity]:
        entity_id = self._by_permalink.get(permalink)
        return self._entities.get(entity_id) if entity_id is not None else None

    def get_by_file_path(self, file_path: str) -> Optional[Entity]:
        entity_id = self._by_file_path.get(file_path)
        return self._entities.get(entity_id) if entity_id is not None else None

    def find_by_title(self, title: str) -> List[Entity]:
        """Entities whose title matches case-insensitively, ordered by id."""
        ids = self._by_title.get(normalize_title(title), set())
        return [self._entities[i] for i in sorted(ids)]

    def find_all(self) -> List[Entity]:
        """All entities in id order."""
        return [self._entities[i] for i in sorted(self._entities)]

    def delete(self, entity_id: int) -> Optional[Entity]:
        """Remove an entity and its index entries, returning it if it existed."""
        entity = self._entities.pop(entity_id, None)
        if entity:
            self._unindex(entity)
            logger.debug(f"Deleted entity {entity}")
        return entity

    def clear(self) -> None:
        """Drop every entity and restart id allocation."""
        self._entities.clear()
        self._by_permalink.clear()
        self._by_title.clear()
        self._by_file_path.clear()
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def _unindex(self, entity: Entity) -> None:
        if self._by_permalink.get(entity.permalink) == entity.id:
            del self._by_permalink[entity.permalink]

        title_key = normalize_title(entity.title)
        ids = self._by_title.get(title_key)
        if ids is not None:
            ids.discard(entity.id)
            if not ids:
                del self._by_title[title_key]

        if self._by_file_path.get(entity.file_path) == entity.id:
            del self._by_file_path[entity.file_path]
