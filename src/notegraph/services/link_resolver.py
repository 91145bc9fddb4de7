"""Service for resolving relation targets and maintaining the edge index."""

from typing import Dict, List, Optional

from loguru import logger

from notegraph.models import Entity, Relation
from notegraph.schemas.memory_url import normalize_memory_url
from notegraph.services.exceptions import AmbiguousIdentifierError
from notegraph.services.identity_resolver import IdentityResolver
from notegraph.utils import normalize_title


def pending_key(target: str) -> str:
    """Key under which a dangling relation waits for its target."""
    return normalize_title(normalize_memory_url(target))


class LinkResolver:
    """Resolves relations to entities and keeps a bidirectional edge index.

    Three indices are kept over the same Relation objects the entities own:
    - outgoing: resolved relations per source entity
    - incoming: resolved relations per target entity (back references)
    - pending: dangling relations keyed by normalized target

    Incoming is always the transpose of outgoing. A dangling relation is a
    normal state, resolution failures are never raised to the writer.
    """

    def __init__(self, identity_resolver: IdentityResolver):
        self.identity_resolver = identity_resolver
        self._owned: Dict[int, List[Relation]] = {}
        self._outgoing: Dict[int, List[Relation]] = {}
        self._incoming: Dict[int, List[Relation]] = {}
        self._pending: Dict[str, List[Relation]] = {}

    def apply_relations(self, entity: Entity, relations: List[Relation]) -> None:
        """Replace the relations owned by ``entity`` and resolve each one."""
        self._drop_owned(entity.id)

        owned = self._owned.setdefault(entity.id, [])
        for relation in relations:
            relation.from_id = entity.id
            relation.to_id = None
            owned.append(relation)
            self._resolve(relation)

        logger.debug(
            f"Applied {len(relations)} relations for {entity.permalink}: "
            f"{len(self._outgoing.get(entity.id, []))} resolved"
        )

    def on_entity_created_or_renamed(self, entity: Entity) -> List[Relation]:
        """Resolve pending relations that name ``entity`` by title or permalink.

        Returns:
            The relations that moved from pending to resolved
        """
        resolved: List[Relation] = []
        keys = [pending_key(entity.title)]
        if pending_key(entity.permalink) not in keys:
            keys.append(pending_key(entity.permalink))

        for key in keys:
            for relation in list(self._pending.get(key, [])):
                target = self._find_target(relation.target)
                if target is None or target.id != entity.id:
                    continue
                self._remove_pending(relation)
                self._link(relation, entity.id)
                resolved.append(relation)

        if resolved:
            logger.debug(f"Resolved {len(resolved)} pending relations to {entity.permalink}")
        return resolved

    def on_entity_deleted(self, entity_id: int) -> List[Relation]:
        """Drop the deleted entity's edges and demote relations that pointed at it.

        Demoted relations stay on their source entities and are tried once
        against the remaining entities before going back to pending.

        Returns:
            The relations that pointed at the deleted entity
        """
        self._drop_owned(entity_id)

        demoted = self._incoming.pop(entity_id, [])
        for relation in demoted:
            relation.to_id = None
            source_edges = self._outgoing.get(relation.from_id)
            if source_edges is not None:
                source_edges.remove(relation)
                if not source_edges:
                    del self._outgoing[relation.from_id]
            self._resolve(relation)

        if demoted:
            logger.debug(f"Demoted {len(demoted)} relations after deleting entity {entity_id}")
        return demoted

    def outgoing(self, entity_id: int) -> List[Relation]:
        """Resolved relations defined by the entity, in authored order."""
        owned = self._owned.get(entity_id, [])
        return [r for r in owned if r.is_resolved]

    def incoming(self, entity_id: int) -> List[Relation]:
        """Resolved relations from other entities that point at this one."""
        return list(self._incoming.get(entity_id, []))

    def pending(self) -> Dict[str, List[Relation]]:
        """Dangling relations keyed by normalized target."""
        return {key: list(relations) for key, relations in self._pending.items()}

    def is_consistent(self) -> bool:
        """Check that the incoming index is exactly the transpose of outgoing."""
        transpose: Dict[int, List[int]] = {}
        for relations in self._outgoing.values():
            for relation in relations:
                if relation.to_id is None:
                    return False
                transpose.setdefault(relation.to_id, []).append(id(relation))

        incoming = {
            target: [id(r) for r in relations] for target, relations in self._incoming.items()
        }
        return {k: sorted(v) for k, v in transpose.items()} == {
            k: sorted(v) for k, v in incoming.items()
        }

    def clear(self) -> None:
        self._owned.clear()
        self._outgoing.clear()
        self._incoming.clear()
        self._pending.clear()

    def _find_target(self, target: str) -> Optional[Entity]:
        try:
            return self.identity_resolver.find(target)
        except AmbiguousIdentifierError as e:
            logger.debug(f"Leaving relation to '{target}' dangling: {e}")
            return None

    def _resolve(self, relation: Relation) -> None:
        target = self._find_target(relation.target)
        if target is None:
            self._pending.setdefault(pending_key(relation.target), []).append(relation)
        else:
            self._link(relation, target.id)

    def _link(self, relation: Relation, target_id: int) -> None:
        relation.to_id = target_id
        self._outgoing.setdefault(relation.from_id, []).append(relation)
        self._incoming.setdefault(target_id, []).append(relation)

    def _remove_pending(self, relation: Relation) -> None:
        key = pending_key(relation.target)
        waiting = self._pending.get(key)
        if waiting is not None and relation in waiting:
            waiting.remove(relation)
            if not waiting:
                del self._pending[key]

    def _drop_owned(self, entity_id: int) -> None:
        for relation in self._owned.pop(entity_id, []):
            if relation.to_id is None:
                self._remove_pending(relation)
                continue
            targets = self._incoming.get(relation.to_id)
            if targets is not None and relation in targets:
                targets.remove(relation)
                if not targets:
                    del self._incoming[relation.to_id]
        self._outgoing.pop(entity_id, None)
