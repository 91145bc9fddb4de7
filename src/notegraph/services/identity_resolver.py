"""Resolves identifiers to entities and hands out unique permalinks."""

from typing import Optional, Set

from loguru import logger

from notegraph.models import Entity
from notegraph.repository.entity_repository import EntityRepository
from notegraph.schemas.memory_url import MemoryUrl, normalize_memory_url
from notegraph.services.exceptions import AmbiguousIdentifierError, EntityNotFoundError
from notegraph.utils import generate_permalink


class IdentityResolver:
    """Maps titles, permalinks and memory:// references to entities.

    Resolution order:
    1. Exact permalink (memory:// scheme stripped first)
    2. Case-insensitive title, failing if more than one entity shares it
    """

    def __init__(self, entity_repository: EntityRepository):
        self.entity_repository = entity_repository
        # permalinks handed to in-flight creates that are not in the store yet
        self._claimed: Set[str] = set()

    def find(self, identifier: str) -> Optional[Entity]:
        """Resolve an identifier, returning None when nothing matches.

        Raises:
            AmbiguousIdentifierError: If the identifier is a title shared by several entities
        """
        if not identifier or not identifier.strip():
            return None

        permalink = normalize_memory_url(identifier)
        entity = self.entity_repository.get_by_permalink(permalink)
        if entity:
            return entity

        # memory:// always names a permalink, never a title
        if MemoryUrl.is_memory_url(identifier):
            return None

        matches = self.entity_repository.find_by_title(identifier)
        if len(matches) > 1:
            raise AmbiguousIdentifierError(identifier, [e.permalink for e in matches])
        return matches[0] if matches else None

    def resolve_identifier(self, identifier: str) -> Entity:
        """Resolve an identifier to exactly one entity.

        Raises:
            EntityNotFoundError: If nothing matches
            AmbiguousIdentifierError: If the title matches several entities
        """
        entity = self.find(identifier)
        if entity is None:
            raise EntityNotFoundError(f"Entity not found: {identifier}", identifier=identifier)
        return entity

    def _is_taken(self, permalink: str, entity_id: Optional[int]) -> bool:
        existing = self.entity_repository.get_by_permalink(permalink)
        if existing is not None:
            return existing.id != entity_id
        return permalink in self._claimed

    def unique_permalink(self, permalink: str, entity_id: Optional[int] = None) -> str:
        """Disambiguate ``permalink`` with -2, -3, ... until no other entity holds it."""
        candidate = permalink
        suffix = 1
        while self._is_taken(candidate, entity_id):
            suffix += 1
            candidate = f"{permalink}-{suffix}"
        if candidate != permalink:
            logger.debug(f"Permalink {permalink} taken, using {candidate}")
        return candidate

    def generate_permalink(self, folder: str, title: str, entity_id: Optional[int] = None) -> str:
        """Generate a unique permalink for ``title`` in ``folder``.

        A permalink already held by ``entity_id`` is reused unchanged.
        """
        return self.unique_permalink(generate_permalink(folder, title), entity_id)

    def claim_permalink(self, permalink: str) -> None:
        """Reserve a permalink for a create that has not reached the store yet."""
        self._claimed.add(permalink)

    def release_permalink(self, permalink: str) -> None:
        self._claimed.discard(permalink)
