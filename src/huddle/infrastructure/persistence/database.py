"""Async database connection management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

# Registers every table on SQLModel.metadata
import huddle.domain.entities  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Async connection manager for the chat record store.

    Example:
        >>> database = Database("sqlite+aiosqlite:///./data/huddle.db")
        >>> await database.initialize()
        >>> async with database.get_session() as session:
        ...     message = await session.get(ChatMessage, message_id)
        >>> await database.close()
    """

    def __init__(self, url: str) -> None:
        """Initialize Database with connection URL.

        Args:
            url: SQLAlchemy async connection URL (driver must be explicit).

        Raises:
            ValueError: If URL is empty or has no async driver.
        """
        if not url:
            raise ValueError("Database URL cannot be empty")

        scheme = urlparse(url).scheme
        if "+" not in scheme:
            raise ValueError(f"Invalid database URL format: {url}")

        self._url = url
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_sqlite(self) -> bool:
        return urlparse(self._url).scheme.startswith("sqlite")

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine.

        Raises:
            RuntimeError: If database is not initialized.
        """
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    async def initialize(self) -> None:
        """Create the engine and any missing tables."""
        if self.is_sqlite:
            self._ensure_parent_directory()

        self._engine = create_async_engine(self._url, echo=False)
        if self.is_sqlite:
            event.listen(
                self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys
            )

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    def _ensure_parent_directory(self) -> None:
        # sqlite+aiosqlite:///rel.db -> "/rel.db", :////abs.db -> "//abs.db"
        path = urlparse(self._url).path.removeprefix("/")
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    async def close(self) -> None:
        """Dispose the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error.

        Raises:
            RuntimeError: If database is not initialized or has been closed.
        """
        if self._session_factory is None:
            raise RuntimeError("Database not initialized or has been closed.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
