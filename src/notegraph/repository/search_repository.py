"""Repository for search operations over the SQLite FTS5 index."""

import asyncio
import json
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notegraph import db
from notegraph.models.search import CREATE_SEARCH_INDEX, DROP_SEARCH_INDEX
from notegraph.schemas.search import SearchResult

# Characters outside words carry FTS5 syntax, so queries are cut into word terms
SEARCH_TERM = re.compile(r"\w+")


class SearchRepository:
    """Repository for search index operations."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        # one session at a time: SQLite has a single writer and the in-memory
        # database shares one connection
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._lock:
            async with db.scoped_session(self.session_maker) as session:
                yield session

    async def init_search_index(self):
        """Create the search index if it does not exist."""
        async with self._session() as session:
            await session.execute(CREATE_SEARCH_INDEX)

    async def reset_search_index(self):
        """Drop and recreate the search index, leaving it empty."""
        async with self._session() as session:
            await session.execute(DROP_SEARCH_INDEX)
            await session.execute(CREATE_SEARCH_INDEX)
        logger.debug("Search index reset")

    def build_match_expression(self, query: str) -> Optional[str]:
        """Turn free text into an FTS5 expression: every term, prefix matched.

        Returns None when the query has no searchable terms.
        """
        terms = SEARCH_TERM.findall(query.lower())
        if not terms:
            return None
        return " AND ".join(f'"{term}"*' for term in terms)

    async def search(
        self,
        query: str,
        limit: int = 10,
        entity_types: Optional[List[str]] = None,
    ) -> List[SearchResult]:
        """Full-text search ranked by bm25, ties broken by id."""
        match = self.build_match_expression(query)
        if match is None:
            return []

        conditions = ["search_index MATCH :match"]
        params: Dict[str, Any] = {"match": match, "limit": limit}

        if entity_types:
            placeholders = []
            for i, entity_type in enumerate(entity_types):
                params[f"entity_type_{i}"] = entity_type
                placeholders.append(f":entity_type_{i}")
            conditions.append(f"entity_type IN ({', '.join(placeholders)})")

        sql = f"""
            SELECT
                id,
                title,
                permalink,
                file_path,
                entity_type,
                snippet(search_index, -1, '', '', '...', 16) as excerpt,
                bm25(search_index) as score
            FROM search_index
            WHERE {" AND ".join(conditions)}
            ORDER BY score ASC, CAST(id AS INTEGER) ASC
            LIMIT :limit
        """

        logger.debug(f"Search query: {match!r} params: {params}")

        async with self._session() as session:
            result = await session.execute(text(sql), params)
            rows = result.fetchall()

        return [
            SearchResult(
                id=int(row.id),
                title=row.title,
                permalink=row.permalink,
                file_path=row.file_path,
                entity_type=row.entity_type,
                excerpt=row.excerpt or "",
                score=row.score,
            )
            for row in rows
        ]

    async def index_item(
        self,
        id: int,
        title: str,
        content: str,
        permalink: str,
        file_path: str,
        entity_type: str,
        metadata: dict,
    ):
        """Index or replace the row for one entity."""
        async with self._session() as session:
            # Delete existing record if any
            await session.execute(
                text("DELETE FROM search_index WHERE id = :id"),
                {"id": id},
            )

            await session.execute(
                text("""
                    INSERT INTO search_index (
                        id, title, content, permalink, file_path, entity_type, metadata
                    ) VALUES (
                        :id, :title, :content, :permalink, :file_path, :entity_type, :metadata
                    )
                """),
                {
                    "id": id,
                    "title": title,
                    "content": content,
                    "permalink": permalink,
                    "file_path": file_path,
                    "entity_type": entity_type,
                    "metadata": json.dumps(metadata),
                },
            )
            logger.debug(f"indexed {permalink}")

    async def delete_by_id(self, id: int):
        """Delete an entity's row from the search index."""
        async with self._session() as session:
            await session.execute(
                text("DELETE FROM search_index WHERE id = :id"),
                {"id": id},
            )

    async def find_all_ids(self) -> List[int]:
        """Ids of every indexed entity, in id order."""
        async with self._session() as session:
            result = await session.execute(text("SELECT id FROM search_index"))
            return sorted(int(row.id) for row in result.fetchall())
