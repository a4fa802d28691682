"""
Async database engine and session management.

`DatabaseService` owns the single SQLAlchemy `AsyncEngine` behind the SQL
record store. All state lives on the class; there is nothing to
instantiate.

Transaction model
-----------------
- `get_transaction()` commits on success and rolls back on any exception
  (the exception is re-raised). Store code never calls `session.commit()`.
- `get_session()` is for reads; nothing is committed.
- On PostgreSQL every session runs with `SET LOCAL statement_timeout`.

Pooling
-------
NullPool while `ENVIRONMENT=testing`; otherwise a sized QueuePool with
pre-ping, configured from the `DATABASE_*` settings on `Config`.

>>> await DatabaseService.initialize()
>>> async with DatabaseService.get_transaction() as session:
...     row = await session.get(ProgressionProfile, profile_id)
...     row.level = 2
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.core.config.config import Config
from src.core.database.base import Base
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_POSTGRES_SCHEMES = ("postgresql://", "postgresql+asyncpg://")


class DatabaseInitializationError(RuntimeError):
    """DATABASE_URL missing or the engine could not be created."""


class DatabaseNotInitializedError(RuntimeError):
    """A session was requested before initialize() or after shutdown()."""


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": bool(Config.DATABASE_ECHO)}
    if Config.is_testing():
        options["poolclass"] = NullPool
    elif url.startswith(_POSTGRES_SCHEMES):
        options.update(
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            pool_pre_ping=True,
        )
    return options


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 2)


class DatabaseService:
    """
    Class-level engine holder.

    Public API: initialize(url=None), shutdown(), is_initialized(),
    get_session(), get_transaction(), create_schema(), drop_schema(),
    health_check().
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _statement_timeout_ms: Optional[int] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the engine and session factory. A second call is a no-op.

        Raises:
            DatabaseInitializationError: no URL configured or engine creation failed.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            database_url = url or Config.DATABASE_URL
            if not database_url:
                logger.error("DATABASE_URL is not configured")
                raise DatabaseInitializationError("DATABASE_URL must be a non-empty string")

            scheme = database_url.split(":", 1)[0]
            try:
                cls._engine = create_async_engine(database_url, **_engine_options(database_url))
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"url_scheme": scheme, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

            cls._session_factory = async_sessionmaker(
                bind=cls._engine, class_=AsyncSession, expire_on_commit=False
            )
            cls._statement_timeout_ms = (
                Config.DATABASE_STATEMENT_TIMEOUT_MS
                if database_url.startswith(_POSTGRES_SCHEMES)
                else None
            )
            logger.info("DatabaseService initialized", extra={"url_scheme": scheme})

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call repeatedly."""
        async with cls._init_lock:
            if cls._engine is None:
                return

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._statement_timeout_ms = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Schema
    # ========================================================================

    @classmethod
    async def create_schema(cls) -> None:
        """Create the progression tables that do not exist yet."""
        async with cls._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    @classmethod
    async def drop_schema(cls) -> None:
        async with cls._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Database schema dropped")

    # ========================================================================
    # Health
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """`SELECT 1` round trip. Returns False instead of raising."""
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error_type": type(exc).__name__, "duration_ms": _elapsed_ms(start)},
            )
            return False
        return True

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    def _require_engine(cls) -> AsyncEngine:
        if cls._engine is None or cls._session_factory is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._engine

    @classmethod
    async def _open(cls) -> AsyncSession:
        cls._require_engine()
        assert cls._session_factory is not None
        session = cls._session_factory()
        if cls._statement_timeout_ms is not None:
            await session.execute(text(f"SET LOCAL statement_timeout = {cls._statement_timeout_ms}"))
        return session

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Read session; use `get_transaction()` for writes."""
        session = await cls._open()
        try:
            yield session
        finally:
            await session.close()

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """Atomic unit of work: commit on success, rollback and re-raise on error."""
        session = await cls._open()
        start = time.perf_counter()
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error(
                "Transaction rolled back",
                extra={
                    "error_type": type(exc).__name__,
                    "duration_ms": _elapsed_ms(start),
                },
                exc_info=isinstance(exc, DBAPIError),
            )
            raise
        finally:
            await session.close()
