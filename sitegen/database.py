"""Database connection and session handling.

A ``Database`` is constructed explicitly from settings by each process and
tied to its lifetime (``connect()`` at startup, ``dispose()`` at shutdown).
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
import structlog

from sitegen.config import Settings
from sitegen.models import Base

logger = structlog.get_logger()


class Database:
    """Async engine plus session factory."""

    def __init__(self, url: str, *, ssl: bool = False, echo: bool = False):
        self.url = url
        self.ssl = ssl
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, ssl=settings.use_database_ssl)

    def connect(self) -> None:
        if self._engine is not None:
            return
        connect_args = {}
        if self.ssl and self.url.startswith("postgresql+asyncpg"):
            connect_args["ssl"] = "require"
        kwargs = {"echo": self.echo, "connect_args": connect_args}
        if not self.url.startswith("sqlite"):
            kwargs["pool_pre_ping"] = True
        self._engine = create_async_engine(self.url, **kwargs)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("database_connected", ssl=self.ssl)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("database_disposed")
        self._engine = None
        self._sessionmaker = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and rolls back on error."""
        if self._sessionmaker is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create tables directly (development and tests; production uses alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
