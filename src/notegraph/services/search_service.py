"""Service for search operations."""

from typing import List, Optional

from loguru import logger

from notegraph.models import Entity
from notegraph.repository.entity_repository import EntityRepository
from notegraph.repository.search_repository import SearchRepository
from notegraph.schemas.search import SearchQuery, SearchResult


class SearchService:
    """Keeps the full-text index in step with the entity store.

    The index is a derived cache. ``reindex_all`` rebuilds it from the
    entity store alone.
    """

    def __init__(
        self,
        search_repository: SearchRepository,
        entity_repository: EntityRepository,
    ):
        self.repository = search_repository
        self.entity_repository = entity_repository

    async def init_search_index(self):
        """Create FTS5 virtual table if it doesn't exist."""
        await self.repository.init_search_index()

    async def reindex_all(self) -> None:
        """Reindex all content from the entity store."""
        logger.info("Starting full search reindex")

        await self.repository.reset_search_index()

        entities = self.entity_repository.find_all()
        for entity in entities:
            await self.index_entity(entity)

        logger.info(f"Search reindex complete: {len(entities)} entities")

    async def clear(self) -> None:
        await self.repository.reset_search_index()

    def entity_document(self, entity: Entity) -> str:
        """Searchable text for an entity: body, observations and tags."""
        parts = [entity.body]
        for obs in entity.observations:
            parts.append(f"{obs.category} {obs.content} {' '.join(obs.tags)}")
        parts.extend(entity.tags)
        return "\n".join(p.strip() for p in parts if p and p.strip())

    async def index_entity(self, entity: Entity) -> None:
        """Build or replace the search document for ``entity``."""
        await self.repository.index_item(
            id=entity.id,
            title=entity.title,
            content=self.entity_document(entity),
            permalink=entity.permalink,
            file_path=entity.file_path,
            entity_type=entity.entity_type,
            metadata={
                "tags": entity.tags,
                "created_at": entity.created_at.isoformat() if entity.created_at else None,
                "updated_at": entity.updated_at.isoformat() if entity.updated_at else None,
            },
        )

    async def remove(self, entity_id: int) -> None:
        """Delete an entity's document from the search index."""
        await self.repository.delete_by_id(entity_id)

    async def search(
        self,
        query: str,
        limit: int = 10,
        entity_types: Optional[List[str]] = None,
    ) -> List[SearchResult]:
        """Ranked full-text search. Only entities still in the store are returned.

        Index rows for entities that left the store are skipped, fetching
        further pages until ``limit`` live hits are found or the index runs out.
        """
        search_query = SearchQuery(text=query, limit=limit, entity_types=entity_types)
        logger.debug(f"Searching with query: {search_query}")

        fetch = search_query.limit
        while True:
            results = await self.repository.search(
                search_query.text,
                limit=fetch,
                entity_types=search_query.entity_types,
            )
            live = [r for r in results if r.id in self.entity_repository]
            if len(live) >= search_query.limit or len(results) < fetch:
                return live[: search_query.limit]
            fetch *= 2
