"""Common test fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from notegraph import db
from notegraph.config import ProjectConfig
from notegraph.db import DatabaseType
from notegraph.graph import KnowledgeGraph
from notegraph.markdown.entity_parser import EntityParser
from notegraph.markdown.markdown_processor import MarkdownProcessor
from notegraph.repository.entity_repository import EntityRepository
from notegraph.repository.search_repository import SearchRepository
from notegraph.services.context_service import ContextService
from notegraph.services.entity_service import EntityService
from notegraph.services.file_service import FileService
from notegraph.services.identity_resolver import IdentityResolver
from notegraph.services.link_resolver import LinkResolver
from notegraph.services.search_service import SearchService
from notegraph.services.sync_service import SyncService


class StepClock:
    """Deterministic clock: every call is one second after the last."""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def project_root(tmp_path) -> Path:
    root = tmp_path / "knowledge"
    root.mkdir()
    return root


@pytest.fixture
def project_config(project_root) -> ProjectConfig:
    return ProjectConfig(home=project_root)


@pytest_asyncio.fixture(scope="function")
async def engine_factory(
    project_config,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Special version of the engine factory with an in-memory search db."""
    async with db.engine_session_factory(
        db_path=project_config.database_path, db_type=DatabaseType.MEMORY
    ) as (engine, session_maker):
        yield engine, session_maker


@pytest_asyncio.fixture
async def session_maker(engine_factory) -> async_sessionmaker[AsyncSession]:
    _, session_maker = engine_factory
    return session_maker


@pytest_asyncio.fixture
async def search_repository(session_maker) -> SearchRepository:
    repository = SearchRepository(session_maker)
    await repository.init_search_index()
    return repository


@pytest.fixture
def entity_repository() -> EntityRepository:
    return EntityRepository()


@pytest.fixture
def identity_resolver(entity_repository) -> IdentityResolver:
    return IdentityResolver(entity_repository)


@pytest.fixture
def link_resolver(identity_resolver) -> LinkResolver:
    return LinkResolver(identity_resolver)


@pytest.fixture
def file_service(project_root) -> FileService:
    return FileService(project_root)


@pytest.fixture
def entity_parser() -> EntityParser:
    return EntityParser()


@pytest.fixture
def markdown_processor() -> MarkdownProcessor:
    return MarkdownProcessor()


@pytest_asyncio.fixture
async def search_service(search_repository, entity_repository) -> SearchService:
    return SearchService(search_repository, entity_repository)


@pytest.fixture
def context_service(entity_repository, identity_resolver, link_resolver) -> ContextService:
    return ContextService(entity_repository, identity_resolver, link_resolver)


@pytest_asyncio.fixture
async def entity_service(
    entity_parser,
    markdown_processor,
    entity_repository,
    identity_resolver,
    link_resolver,
    search_service,
    file_service,
    clock,
) -> EntityService:
    return EntityService(
        entity_parser=entity_parser,
        markdown_processor=markdown_processor,
        entity_repository=entity_repository,
        identity_resolver=identity_resolver,
        link_resolver=link_resolver,
        search_service=search_service,
        file_service=file_service,
        now=clock,
    )


@pytest_asyncio.fixture
async def sync_service(
    entity_service, entity_repository, link_resolver, search_service, file_service
) -> SyncService:
    return SyncService(
        entity_service=entity_service,
        entity_repository=entity_repository,
        link_resolver=link_resolver,
        search_service=search_service,
        file_service=file_service,
    )


@pytest_asyncio.fixture
async def graph(project_root, session_maker, clock) -> KnowledgeGraph:
    knowledge_graph = KnowledgeGraph(project_root, session_maker, now=clock)
    await knowledge_graph.search_service.init_search_index()
    return knowledge_graph


@pytest_asyncio.fixture
async def test_graph(entity_service):
    """A small graph:

    Root -> Connected One -> Deep
    Root -> Connected Two
    Deep -> Root (cycle back)
    """
    root = await entity_service.create_entity(
        "Root",
        "- [note] Root note #start\n- connects_to [[Connected One]]\n- connects_to [[Connected Two]]",
        folder="test",
    )
    connected1 = await entity_service.create_entity(
        "Connected One", "- deeper_than [[Deep]]", folder="test"
    )
    connected2 = await entity_service.create_entity("Connected Two", "A leaf note.", folder="test")
    deep = await entity_service.create_entity("Deep", "- back_to [[Root]]", folder="test")
    return {
        "root": root,
        "connected1": connected1,
        "connected2": connected2,
        "deep": deep,
    }
