"""Service for the entity write path: file, store, links, search."""

import asyncio
import weakref
from datetime import datetime
from pathlib import PurePosixPath
from typing import Callable, List, Optional

from loguru import logger

from notegraph.markdown.entity_parser import EntityParser, split_frontmatter
from notegraph.markdown.markdown_processor import MarkdownProcessor
from notegraph.markdown.schemas import EntityMarkdown
from notegraph.models import Entity, Observation, Relation
from notegraph.repository.entity_repository import EntityRepository
from notegraph.services.exceptions import EntityCreationError, EntityNotFoundError
from notegraph.services.file_service import FileService
from notegraph.services.identity_resolver import IdentityResolver
from notegraph.services.link_resolver import LinkResolver
from notegraph.services.search_service import SearchService
from notegraph.utils import normalize_title, parse_tags


def local_now() -> datetime:
    return datetime.now().astimezone()


class EntityService:
    """Creates, updates, deletes and re-syncs entities.

    Every write runs parse -> store -> resolve links -> reindex as one unit
    per entity, serialized on the entity's file path. File and search I/O are awaited first, then the entity is
    published to the store and link resolver in a single synchronous step so
    readers never see relations ahead of the search document.
    """

    def __init__(
        self,
        entity_parser: EntityParser,
        markdown_processor: MarkdownProcessor,
        entity_repository: EntityRepository,
        identity_resolver: IdentityResolver,
        link_resolver: LinkResolver,
        search_service: SearchService,
        file_service: FileService,
        now: Callable[[], datetime] = local_now,
    ):
        self.entity_parser = entity_parser
        self.markdown_processor = markdown_processor
        self.repository = entity_repository
        self.identity_resolver = identity_resolver
        self.link_resolver = link_resolver
        self.search_service = search_service
        self.file_service = file_service
        self.now = now
        # a lock lives only while a write holds or waits on it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def lock(self, file_path: str) -> asyncio.Lock:
        """Mutex serializing writes to the entity backed by ``file_path``."""
        lock = self._locks.get(file_path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[file_path] = lock
        return lock

    async def create_entity(
        self,
        title: str,
        content: str,
        folder: str = "",
        tags: Optional[List[str]] = None,
        entity_type: Optional[str] = None,
    ) -> Entity:
        """Create a new entity and write its file.

        A title already used in the folder gets a numeric permalink suffix.

        Raises:
            EntityCreationError: If an unindexed file already sits at the target path
            FileOperationError: If the file cannot be written
        """
        permalink = self.identity_resolver.generate_permalink(folder, title)
        self.identity_resolver.claim_permalink(permalink)
        logger.debug(f"Creating entity '{title}' at permalink {permalink}")

        file_path = f"{permalink}.md"
        try:
            async with self.lock(file_path):
                if await self.file_service.exists(file_path):
                    raise EntityCreationError(
                        f"file_path {file_path} for entity {permalink} already exists"
                    )

                now = self.now()
                metadata = self.markdown_processor.format_frontmatter(
                    title=title,
                    entity_type=entity_type or "note",
                    permalink=permalink,
                    tags=parse_tags(tags),
                    created=now,
                    modified=now,
                )
                text = self.markdown_processor.dumps(metadata, content)
                checksum = await self.file_service.write_file(file_path, text)

                markdown = self.entity_parser.parse_file_content(file_path, text)
                entity = self.entity_from_markdown(
                    self.repository.next_id(), file_path, markdown, checksum
                )
                await self.publish(entity)
                return entity
        finally:
            self.identity_resolver.release_permalink(permalink)

    async def update_entity(
        self,
        identifier: str,
        content: str,
        title: Optional[str] = None,
        tags: Optional[List[str]] = None,
        entity_type: Optional[str] = None,
    ) -> Entity:
        """Replace an entity's content by identity.

        Permalink, file path and created_at are kept. Title, tags and type
        keep their current values unless given.

        Raises:
            EntityNotFoundError: If the identifier resolves to nothing
            AmbiguousIdentifierError: If the identifier is a shared title
            FileOperationError: If the file cannot be read or written
        """
        entity = self.identity_resolver.resolve_identifier(identifier)
        logger.debug(f"Updating entity with permalink: {entity.permalink}")

        async with self.lock(entity.file_path):
            current = self.repository.get(entity.id)
            if current is None:
                raise EntityNotFoundError(f"Entity not found: {identifier}", identifier=identifier)

            # keep frontmatter keys this service does not manage
            existing_text, _ = await self.file_service.read_file(current.file_path)
            extra, _ = split_frontmatter(existing_text)

            metadata = self.markdown_processor.format_frontmatter(
                title=title or current.title,
                entity_type=entity_type or current.entity_type,
                permalink=current.permalink,
                tags=parse_tags(tags) if tags is not None else current.tags,
                created=current.created_at,
                modified=self.now(),
                extra=extra,
            )
            text = self.markdown_processor.dumps(metadata, content)
            checksum = await self.file_service.write_file(current.file_path, text)

            markdown = self.entity_parser.parse_file_content(current.file_path, text)
            updated = self.entity_from_markdown(
                current.id, current.file_path, markdown, checksum, existing=current
            )
            await self.publish(updated)
            return updated

    async def delete_entity(self, identifier: str) -> bool:
        """Delete an entity and its file.

        Relations in other notes that pointed at it become dangling again.

        Raises:
            EntityNotFoundError: If the identifier resolves to nothing
        """
        entity = self.identity_resolver.resolve_identifier(identifier)
        logger.debug(f"Deleting entity: {entity.permalink}")

        async with self.lock(entity.file_path):
            if self.repository.get(entity.id) is None:
                return True  # Already deleted

            await self.file_service.delete_file(entity.file_path)
            await self.search_service.remove(entity.id)
            self.unpublish(entity.id)
            return True

    async def read_entity_text(self, identifier: str) -> str:
        """Raw file text of an entity.

        Raises:
            EntityNotFoundError: If the identifier resolves to nothing
            FileOperationError: If the file cannot be read
        """
        entity = self.identity_resolver.resolve_identifier(identifier)
        text, _ = await self.file_service.read_file(entity.file_path)
        return text

    async def sync_file(self, path: str) -> Entity:
        """(Re)index one file from disk.

        A file already known by path keeps its id and permalink. A new file
        keeps the permalink in its frontmatter when that is free, otherwise a
        unique one is generated. Missing permalink or timestamps are written
        back to the file.

        Raises:
            FileOperationError: If the file cannot be read or written
        """
        file_path = self.file_service.relative_path(path)
        async with self.lock(file_path):
            text, checksum = await self.file_service.read_file(file_path)

            existing = self.repository.get_by_file_path(file_path)
            if existing and existing.checksum == checksum:
                logger.debug(f"File unchanged, skipping: {file_path}")
                return existing

            markdown = self.entity_parser.parse_file_content(file_path, text)
            declared = markdown.frontmatter.permalink

            if existing:
                permalink = existing.permalink
            elif declared:
                permalink = self.identity_resolver.unique_permalink(declared)
            else:
                folder = str(PurePosixPath(file_path).parent).lstrip(".")
                permalink = self.identity_resolver.generate_permalink(
                    folder, markdown.frontmatter.title
                )

            claimed = existing is None
            if claimed:
                self.identity_resolver.claim_permalink(permalink)

            try:
                updates = {}
                if declared != permalink:
                    if declared:
                        logger.warning(
                            f"Permalink '{declared}' in {file_path} is taken, using '{permalink}'"
                        )
                    updates["permalink"] = permalink
                now = self.now()
                if markdown.created is None:
                    created = existing.created_at if existing and existing.created_at else now
                    updates["created"] = created.isoformat()
                if markdown.modified is None:
                    updates["modified"] = now.isoformat()

                if updates:
                    logger.debug(f"Updating frontmatter of {file_path}: {list(updates)}")
                    text = self.markdown_processor.update_frontmatter(text, updates)
                    checksum = await self.file_service.write_file(file_path, text)
                    markdown = self.entity_parser.parse_file_content(file_path, text)

                entity_id = existing.id if existing else self.repository.next_id()
                entity = self.entity_from_markdown(
                    entity_id, file_path, markdown, checksum, existing=existing
                )
                await self.publish(entity)
                return entity
            finally:
                if claimed:
                    self.identity_resolver.release_permalink(permalink)

    async def remove_file(self, path: str) -> bool:
        """Forget the entity backed by a file that no longer exists.

        Returns:
            True if an entity was removed
        """
        file_path = self.file_service.relative_path(path)
        async with self.lock(file_path):
            entity = self.repository.get_by_file_path(file_path)
            if entity is None:
                return False

            await self.search_service.remove(entity.id)
            self.unpublish(entity.id)
        logger.debug(f"Removed entity for deleted file {file_path}")
        return True

    async def list_entities(self, path_prefix: str = "", depth: int = 1) -> List[Entity]:
        """Entities whose files sit under ``path_prefix`` at most ``depth`` folders down.

        Depth 1 lists files directly in the folder.
        """
        if depth < 1:
            raise ValueError(f"depth must be >= 1, got {depth}")

        prefix = path_prefix.strip().strip("/")
        entities = []
        for file_path in await self.file_service.list_files("**/*.md"):
            if prefix:
                if not file_path.startswith(f"{prefix}/"):
                    continue
                relative = file_path[len(prefix) + 1 :]
            else:
                relative = file_path

            if relative.count("/") + 1 > depth:
                continue

            entity = self.repository.get_by_file_path(file_path)
            if entity:
                entities.append(entity)
        return entities

    async def publish(self, entity: Entity) -> None:
        """Make a parsed entity visible: search document first, then store and edges."""
        await self.search_service.index_entity(entity)

        previous = self.repository.put(entity)
        self.link_resolver.apply_relations(entity, entity.relations)
        if previous is None or normalize_title(previous.title) != normalize_title(entity.title):
            self.link_resolver.on_entity_created_or_renamed(entity)

    def unpublish(self, entity_id: int) -> None:
        """Remove an entity from the store and edge index."""
        if self.repository.delete(entity_id):
            self.link_resolver.on_entity_deleted(entity_id)

    def entity_from_markdown(
        self,
        entity_id: int,
        file_path: str,
        markdown: EntityMarkdown,
        checksum: Optional[str],
        existing: Optional[Entity] = None,
    ) -> Entity:
        """Build the in-memory entity for parsed markdown.

        The permalink is taken from the frontmatter, which callers have
        already made unique.
        """
        created_at = markdown.created
        if existing and existing.created_at:
            created_at = existing.created_at

        return Entity(
            id=entity_id,
            title=markdown.frontmatter.title,
            permalink=markdown.frontmatter.permalink,
            file_path=file_path,
            entity_type=markdown.frontmatter.type,
            content=markdown.content,
            body=markdown.body,
            observations=[
                Observation(category=o.category, content=o.content, tags=list(o.tags))
                for o in markdown.observations
            ],
            relations=[
                Relation(relation_type=r.type, target=r.target, from_id=entity_id)
                for r in markdown.relations
            ],
            tags=markdown.frontmatter.tags,
            created_at=created_at,
            updated_at=markdown.modified,
            checksum=checksum,
        )
