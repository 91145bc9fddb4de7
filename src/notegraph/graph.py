"""The knowledge graph: one object holding every component for a knowledge base.

Nothing is global. Callers open a graph for a config, which rebuilds the
indices from the files on disk, and pass it to whatever needs it::

    async with KnowledgeGraph.open(ProjectConfig(home=path)) as graph:
        await graph.write("Meeting", "- [decision] Ship it", folder="notes")
"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Callable, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notegraph import db
from notegraph.config import ProjectConfig
from notegraph.db import DatabaseType
from notegraph.markdown.entity_parser import EntityParser
from notegraph.markdown.markdown_processor import MarkdownProcessor
from notegraph.repository.entity_repository import EntityRepository
from notegraph.repository.search_repository import SearchRepository
from notegraph.schemas.response import EntitySummary, WriteResult
from notegraph.schemas.search import SearchResult
from notegraph.services.context_service import ContextService
from notegraph.services.entity_service import EntityService, local_now
from notegraph.services.file_service import FileService
from notegraph.services.identity_resolver import IdentityResolver
from notegraph.services.link_resolver import LinkResolver
from notegraph.services.search_service import SearchService
from notegraph.services.sync_service import SyncReport, SyncService
from notegraph.utils import setup_logging


class KnowledgeGraph:
    """Entry points exposed to the tool layer.

    Errors are raised as the typed exceptions in
    ``notegraph.services.exceptions``: EntityNotFoundError,
    AmbiguousIdentifierError, PermalinkConflictError, FileOperationError.
    """

    def __init__(
        self,
        home: Path,
        session_maker: async_sessionmaker[AsyncSession],
        now: Callable[[], datetime] = local_now,
        default_search_limit: int = 10,
    ):
        self.home = home
        self.default_search_limit = default_search_limit

        self.entity_repository = EntityRepository()
        self.search_repository = SearchRepository(session_maker)
        self.file_service = FileService(home)
        self.identity_resolver = IdentityResolver(self.entity_repository)
        self.link_resolver = LinkResolver(self.identity_resolver)
        self.search_service = SearchService(self.search_repository, self.entity_repository)
        self.context_service = ContextService(
            self.entity_repository, self.identity_resolver, self.link_resolver
        )
        self.entity_service = EntityService(
            entity_parser=EntityParser(),
            markdown_processor=MarkdownProcessor(),
            entity_repository=self.entity_repository,
            identity_resolver=self.identity_resolver,
            link_resolver=self.link_resolver,
            search_service=self.search_service,
            file_service=self.file_service,
            now=now,
        )
        self.sync_service = SyncService(
            entity_service=self.entity_service,
            entity_repository=self.entity_repository,
            link_resolver=self.link_resolver,
            search_service=self.search_service,
            file_service=self.file_service,
        )

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        config: ProjectConfig,
        db_type: Optional[DatabaseType] = None,
        now: Callable[[], datetime] = local_now,
        rebuild: bool = True,
        configure_logging: bool = False,
    ) -> AsyncGenerator["KnowledgeGraph", None]:
        """Open the knowledge base at ``config.home`` and rebuild its indices."""
        if configure_logging:
            setup_logging(config.log_level, log_file=config.log_file)

        if db_type is None:
            db_type = DatabaseType.MEMORY if config.search_db_in_memory else DatabaseType.FILESYSTEM

        async with db.engine_session_factory(config.database_path, db_type) as (_, session_maker):
            graph = cls(
                config.home,
                session_maker,
                now=now,
                default_search_limit=config.default_search_limit,
            )
            await graph.search_service.init_search_index()
            if rebuild:
                await graph.rebuild_index()
            logger.info(f"Knowledge graph open at {config.home}")
            yield graph

    async def write(
        self,
        title: str,
        content: str,
        folder: str = "",
        tags: Optional[List[str]] = None,
        entity_type: Optional[str] = None,
    ) -> WriteResult:
        """Create a new note. Reusing a title in a folder yields a suffixed permalink."""
        entity = await self.entity_service.create_entity(
            title=title, content=content, folder=folder, tags=tags, entity_type=entity_type
        )
        return WriteResult.from_model(entity, created=True)

    async def update(
        self,
        identifier: str,
        content: str,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        entity_type: Optional[str] = None,
    ) -> WriteResult:
        """Replace an existing note's content, keeping its identity and permalink."""
        entity = await self.entity_service.update_entity(
            identifier, content, title=title, tags=tags, entity_type=entity_type
        )
        return WriteResult.from_model(entity, created=False)

    async def delete(self, identifier: str) -> bool:
        return await self.entity_service.delete_entity(identifier)

    async def read(self, identifier: str) -> str:
        """Raw text of a note, frontmatter included."""
        return await self.entity_service.read_entity_text(identifier)

    async def search(self, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        return await self.search_service.search(query, limit or self.default_search_limit)

    async def build_context(self, identifier: str, depth: int = 1) -> List[EntitySummary]:
        """Notes reachable from ``identifier`` through authored relations, in BFS order."""
        items = self.context_service.build_context_with_depths(identifier, depth)
        return [EntitySummary.from_model(item.entity, depth=item.depth) for item in items]

    async def list_entities(self, path_prefix: str = "", depth: int = 1) -> List[EntitySummary]:
        entities = await self.entity_service.list_entities(path_prefix, depth)
        return [EntitySummary.from_model(e) for e in entities]

    async def rebuild_index(self) -> SyncReport:
        return await self.sync_service.rebuild_index()

    async def sync_file(self, path: str) -> EntitySummary:
        """Re-index one changed file. Called by an external file watcher."""
        entity = await self.entity_service.sync_file(path)
        return EntitySummary.from_model(entity)

    async def remove_file(self, path: str) -> bool:
        """Forget a deleted file. Called by an external file watcher."""
        return await self.entity_service.remove_file(path)
