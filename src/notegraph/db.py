"""Async SQLite engine and sessions backing the full-text search index.

The index is derived data: an in-memory database is rebuilt from the files
on every start, a file backed one only saves memory on large knowledge bases.
"""

from contextlib import asynccontextmanager
from enum import Enum, auto
from pathlib import Path
from typing import AsyncGenerator

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool


class DatabaseType(Enum):
    """Where the search index lives."""

    MEMORY = auto()
    FILESYSTEM = auto()

    @classmethod
    def get_db_url(cls, db_path: Path, db_type: "DatabaseType") -> str:
        """SQLAlchemy URL for the search index."""
        if db_type == cls.MEMORY:
            return "sqlite+aiosqlite://"
        return f"sqlite+aiosqlite:///{db_path}"


@asynccontextmanager
async def scoped_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session committed on success and rolled back on error."""
    session = session_maker()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


@asynccontextmanager
async def engine_session_factory(
    db_path: Path,
    db_type: DatabaseType = DatabaseType.FILESYSTEM,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Engine and session factory for the search index, disposed on exit."""
    db_url = DatabaseType.get_db_url(db_path, db_type)

    if db_type == DatabaseType.MEMORY:
        logger.debug("Using in-memory search index")
        # every session must see the same in-memory database
        engine = create_async_engine(
            db_url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    else:
        logger.debug(f"Using search index at {db_path}")
        db_path.parent.mkdir(parents=True, exist_ok=True)
        engine = create_async_engine(db_url, connect_args={"check_same_thread": False})
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)

    try:
        yield engine, async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()
