"""Service for building context from the knowledge graph."""

from collections import deque
from dataclasses import dataclass
from typing import List

from loguru import logger

from notegraph.models import Entity
from notegraph.repository.entity_repository import EntityRepository
from notegraph.services.identity_resolver import IdentityResolver
from notegraph.services.link_resolver import LinkResolver


@dataclass
class ContextItem:
    entity: Entity
    depth: int


class ContextService:
    """Builds context by walking outgoing relations breadth first.

    Only relations authored by a note are followed, back references are not.
    A visited set keyed by entity id keeps cycles from looping.
    """

    def __init__(
        self,
        entity_repository: EntityRepository,
        identity_resolver: IdentityResolver,
        link_resolver: LinkResolver,
    ):
        self.entity_repository = entity_repository
        self.identity_resolver = identity_resolver
        self.link_resolver = link_resolver

    def build_context_with_depths(self, identifier: str, depth: int = 1) -> List[ContextItem]:
        """Entities reachable from ``identifier`` within ``depth`` hops, in BFS order.

        Raises:
            ValueError: If depth is negative
            EntityNotFoundError: If the start identifier resolves to nothing
            AmbiguousIdentifierError: If the start title is shared
        """
        if depth < 0:
            raise ValueError(f"depth must be >= 0, got {depth}")

        start = self.identity_resolver.resolve_identifier(identifier)
        logger.debug(f"Building context for '{identifier}' ({start.permalink}) depth: {depth}")

        items = [ContextItem(entity=start, depth=0)]
        visited = {start.id}
        queue = deque(items)

        while queue:
            current = queue.popleft()
            if current.depth >= depth:
                continue

            for relation in self.link_resolver.outgoing(current.entity.id):
                if relation.to_id in visited:
                    continue
                target = self.entity_repository.get(relation.to_id)
                if target is None:
                    continue
                visited.add(target.id)
                item = ContextItem(entity=target, depth=current.depth + 1)
                items.append(item)
                queue.append(item)

        logger.debug(f"Context for {start.permalink}: {[i.entity.permalink for i in items]}")
        return items

    def build_context(self, identifier: str, depth: int = 1) -> List[Entity]:
        """Ordered, deduplicated entities reachable from ``identifier``."""
        return [item.entity for item in self.build_context_with_depths(identifier, depth)]
