"""
Database connection and session management.

Provides async database access with connection pooling and session
lifecycle management. Engines are owned by a ``Database`` instance
created by the composition root, not kept in module globals.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

import orjson
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

DEFAULT_DATABASE_URL = "sqlite:///data/tenderwatch.db"


def json_serializer(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def json_deserializer(s: str | bytes) -> Any:
    return orjson.loads(s)


# =============================================================================
# SQLite Configuration
# =============================================================================


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Configure SQLite for concurrent readers.

    Enables:
    - WAL mode for better concurrency
    - Synchronous mode NORMAL
    - A busy timeout so writers wait instead of failing
    """

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def get_async_url(url: str) -> str:
    """Convert sync database URL to async variant.

    SQLite: sqlite:/// -> sqlite+aiosqlite:///
    PostgreSQL: postgresql:// -> postgresql+asyncpg://
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    elif url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def _ensure_sqlite_dir(url: str) -> None:
    if not url.startswith("sqlite:///"):
        return
    db_path = url.replace("sqlite:///", "", 1)
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


# =============================================================================
# Database
# =============================================================================


class Database:
    """Async engine plus session factory for one database URL."""

    def __init__(
        self,
        url: str = DEFAULT_DATABASE_URL,
        echo: bool = False,
        pool_size: int = 5,
    ) -> None:
        """Create the engine.

        Args:
            url: SQLAlchemy database URL (converted to its async driver)
            echo: Whether to log SQL statements
            pool_size: Connection pool size (ignored for SQLite)
        """
        self.url = url
        _ensure_sqlite_dir(url)
        async_url = get_async_url(url)

        if async_url.startswith("sqlite"):
            self.engine = create_async_engine(
                async_url,
                echo=echo,
                json_serializer=json_serializer,
                json_deserializer=json_deserializer,
            )
            _configure_sqlite(self.engine)
        else:
            self.engine = create_async_engine(
                async_url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=10,
                pool_pre_ping=True,
                json_serializer=json_serializer,
                json_deserializer=json_deserializer,
            )

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an asynchronous database session.

        Commits on success, rolls back on error.

        Usage:
            async with database.session() as session:
                await session.execute(...)
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create all tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the engine. Call on application shutdown."""
        await self.engine.dispose()
