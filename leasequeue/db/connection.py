"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import make_url, text
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from leasequeue.config import Settings
from leasequeue.db.schema import metadata
from leasequeue.errors import StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)

# Dialects that implement SELECT ... FOR UPDATE SKIP LOCKED
SKIP_LOCKED_DIALECTS = frozenset({"postgresql"})


class Database:
    """
    Owns one async engine and its session factory.

    Constructed explicitly and handed to whatever needs the store; there is
    no module-level engine.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        echo: bool = False,
        use_null_pool: bool = False,
    ):
        """
        Create the engine and session factory.

        Args:
            database_url: SQLAlchemy async URL, e.g. postgresql+asyncpg://...
            pool_size: Connection pool size (ignored for SQLite).
            max_overflow: Extra connections beyond pool_size (ignored for SQLite).
            echo: Log emitted SQL.
            use_null_pool: Open a fresh connection per checkout. Useful in tests.
        """
        url = make_url(database_url)
        self._backend = url.get_backend_name()

        engine_kwargs: dict[str, Any] = {"echo": echo}
        if use_null_pool:
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["pool_pre_ping"] = True
            if self._backend != "sqlite":
                if pool_size is not None:
                    engine_kwargs["pool_size"] = pool_size
                if max_overflow is not None:
                    engine_kwargs["max_overflow"] = max_overflow

        self._engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build a database handle from application settings."""
        return cls(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.log_level == "DEBUG",
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def backend(self) -> str:
        """Dialect backend name, e.g. "postgresql" or "sqlite"."""
        return self._backend

    @property
    def supports_skip_locked(self) -> bool:
        return self._backend in SKIP_LOCKED_DIALECTS

    @asynccontextmanager
    async def session(self, operation: str = "transaction") -> AsyncGenerator[AsyncSession]:
        """
        Open a session wrapping exactly one transaction.

        Commits when the block exits normally and rolls back otherwise.
        Data the store refuses (constraint or encoding violations) surfaces
        as ValidationError; any other driver or SQLAlchemy failure surfaces
        as StoreUnavailable.

        Args:
            operation: Name used in logs and in the raised error.

        Yields:
            AsyncSession: An async database session.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except (DataError, IntegrityError) as e:
                await session.rollback()
                logger.warning(
                    "Store rejected data",
                    extra={"operation": operation, "error": str(e.orig)},
                )
                raise ValidationError(f"store rejected data during {operation}") from e
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                logger.warning(
                    "Store operation failed",
                    extra={"operation": operation, "error": str(e)},
                )
                raise StoreUnavailable(operation, e) from e
            except Exception:
                await session.rollback()
                raise

    async def create_schema(self) -> None:
        """Create the messages table and indexes if they do not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema ready", extra={"backend": self._backend})

    async def ping(self) -> bool:
        """
        Check that the store answers a trivial query.

        Returns:
            True if reachable, False otherwise.
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError):
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    async def dispose(self) -> None:
        """
        Close all pooled connections.
        Should be called on application shutdown.
        """
        await self._engine.dispose()
        logger.info("Database connection closed")
