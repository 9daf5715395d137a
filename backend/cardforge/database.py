"""
Database handle and session management.
Uses the SQLAlchemy async engine (asyncpg in production, aiosqlite in tests).

The engine is owned by an explicitly constructed Database object that the
application lifespan opens and closes; nothing connects at import time.
"""
import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from cardforge.models.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns one async engine and the session factory bound to it."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected. Call connect() first.")
        return self._engine

    async def connect(self) -> None:
        """Create the engine and session factory. Safe to call twice."""
        if self._engine is not None:
            return

        engine_kwargs = {"echo": self.echo, "pool_pre_ping": True}
        if self.url.startswith("postgresql"):
            engine_kwargs.update(pool_size=10, max_overflow=20)
        elif self.url.startswith("sqlite"):
            # Concurrent writers wait on the file lock instead of failing fast
            engine_kwargs["connect_args"] = {"timeout": 30}

        self._engine = create_async_engine(self.url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
        logger.info("Database engine created", extra={"event": "database_connected"})

    async def disconnect(self) -> None:
        """Dispose the engine and drop pooled connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed", extra={"event": "database_disconnected"})

    async def create_all(self) -> None:
        """Create all tables (used at startup and in tests)."""
        # Import models so they register on Base.metadata
        import cardforge.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    def session(self) -> AsyncSession:
        """Open a new scoped session. Use as `async with database.session() as db:`."""
        if self._session_factory is None:
            raise RuntimeError("Database is not connected. Call connect() first.")
        return self._session_factory()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI routes to get database session.
    Usage: db: AsyncSession = Depends(get_db)
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
