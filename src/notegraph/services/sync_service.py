"""Rebuilds every derived index from the markdown files on disk."""

from dataclasses import dataclass, field
from typing import List

from loguru import logger

from notegraph.repository.entity_repository import EntityRepository
from notegraph.services.entity_service import EntityService
from notegraph.services.file_service import FileService
from notegraph.services.link_resolver import LinkResolver
from notegraph.services.search_service import SearchService


@dataclass
class SyncReport:
    """Summary of a rebuild."""

    files: List[str] = field(default_factory=list)
    dangling: int = 0

    @property
    def total(self) -> int:
        return len(self.files)


class SyncService:
    """Replays the write path for every file, starting from empty indices.

    Files are processed in sorted path order so repeated rebuilds assign the
    same ids and produce identical store, edge and search contents.
    """

    def __init__(
        self,
        entity_service: EntityService,
        entity_repository: EntityRepository,
        link_resolver: LinkResolver,
        search_service: SearchService,
        file_service: FileService,
    ):
        self.entity_service = entity_service
        self.entity_repository = entity_repository
        self.link_resolver = link_resolver
        self.search_service = search_service
        self.file_service = file_service

    async def rebuild_index(self) -> SyncReport:
        """Clear store, edges and search index, then re-parse every markdown file."""
        logger.info(f"Rebuilding knowledge graph from {self.file_service.base_path}")

        self.entity_repository.clear()
        self.link_resolver.clear()
        await self.search_service.clear()

        report = SyncReport()
        for file_path in await self.file_service.list_files("**/*.md"):
            await self.entity_service.sync_file(file_path)
            report.files.append(file_path)

        report.dangling = sum(len(r) for r in self.link_resolver.pending().values())
        logger.info(
            f"Rebuild complete: {report.total} entities, {report.dangling} dangling relations"
        )
        return report
