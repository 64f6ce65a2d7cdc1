"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async database engine and session management for the durable score ledger.
Provides atomic transactions, health checks and schema bootstrap.

Responsibilities
----------------
- Own a single AsyncEngine with connection pooling per service instance
- Provide async context managers for sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Configure statement timeouts for PostgreSQL connections
- Expose a lightweight health check
- Create the schema for fresh deployments and tests

Non-Responsibilities
--------------------
- Query construction (repositories)
- Business rules (services)
- Migrations

Architecture Notes
------------------
**Instances, not globals**:
- `ServiceContainer` builds one `DatabaseService` and injects it. Tests build
  their own against SQLite or a Postgres container.

**Lazy engine**:
- The engine is created on first use (or by `initialize()`), so constructing
  the container never touches the network.

**Transaction Model**:
- `get_transaction()` is the primary interface for all state mutations
- Never call `session.commit()` inside service code

**Dialects**:
- PostgreSQL via asyncpg (production): AsyncAdaptedQueuePool + `SET LOCAL statement_timeout`
- SQLite via aiosqlite (tests/local): NullPool, 5s busy timeout

Usage Example
-------------
>>> db = DatabaseService("postgresql+asyncpg://...")
>>> async with db.get_transaction() as session:
>>>     session.add(ScoreRecord(...))
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from dodgeboard.core.config.config import Config
from dodgeboard.core.database.base import metadata
from dodgeboard.core.logging.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the engine configuration for one service instance."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Async engine and session management for one database URL.

    Public API
    ----------
    - initialize() / shutdown()
    - create_schema() / drop_schema()
    - get_session() / get_transaction()
    - health_check()
    - dialect_name
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        echo: Optional[bool] = None,
        use_null_pool: Optional[bool] = None,
    ) -> None:
        self._url = url or Config.DATABASE_URL
        self._echo = Config.DATABASE_ECHO if echo is None else echo
        self._use_null_pool = use_null_pool
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._config_snapshot: Optional[_DatabaseConfigSnapshot] = None
        self._init_lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    def _build_config_snapshot(self) -> _DatabaseConfigSnapshot:
        if not self._url or not isinstance(self._url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        use_null_pool = self._use_null_pool
        if use_null_pool is None:
            use_null_pool = Config.is_testing() or self._url.startswith("sqlite")

        return _DatabaseConfigSnapshot(
            url=self._url,
            echo=self._echo,
            pool_class=NullPool if use_null_pool else AsyncAdaptedQueuePool,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

    def _create_engine(self) -> None:
        try:
            config = self._build_config_snapshot()

            engine_kwargs: dict[str, Any] = {
                "echo": config.echo,
                "poolclass": config.pool_class,
            }

            if config.pool_class is AsyncAdaptedQueuePool:
                engine_kwargs.update(
                    {
                        "pool_size": config.pool_size,
                        "max_overflow": config.max_overflow,
                        "pool_recycle": config.pool_recycle,
                        "pool_timeout": config.pool_timeout,
                        "pool_pre_ping": True,
                    }
                )

            if config.is_sqlite:
                engine_kwargs["connect_args"] = {"timeout": 5}

            self._engine = create_async_engine(config.url, **engine_kwargs)
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            self._config_snapshot = config

            logger.info(
                "DatabaseService initialized successfully",
                extra={
                    "url_scheme": config.url_scheme,
                    "pool_class": config.pool_class.__name__,
                },
            )

        except DatabaseInitializationError:
            raise
        except Exception as exc:
            logger.error(
                "DatabaseService initialization failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise DatabaseInitializationError(
                f"Database initialization failed: {exc}"
            ) from exc

    async def initialize(self) -> None:
        """Create the engine if it does not exist yet (idempotent)."""
        async with self._init_lock:
            if self._engine is not None:
                return
            self._create_engine()

    async def shutdown(self) -> None:
        """Dispose the engine; safe to call more than once."""
        async with self._init_lock:
            if self._engine is None:
                return

            logger.info("Shutting down DatabaseService")
            try:
                await self._engine.dispose()
            finally:
                self._engine = None
                self._session_factory = None
                self._config_snapshot = None

    def _ensure_engine(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._create_engine()
        assert self._session_factory is not None
        return self._session_factory

    @property
    def engine(self) -> AsyncEngine:
        self._ensure_engine()
        assert self._engine is not None
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    # ========================================================================
    # Schema
    # ========================================================================

    async def create_schema(self) -> None:
        """Create every table registered on SQLModel.metadata."""
        # Model modules register their tables on import
        import dodgeboard.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

        logger.info(
            "Database schema ensured",
            extra={"tables": sorted(metadata.tables.keys())},
        )

    async def drop_schema(self) -> None:
        import dodgeboard.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)

    # ========================================================================
    # Health Check
    # ========================================================================

    async def health_check(self) -> bool:
        """
        Execute `SELECT 1`; never raises.

        Suitable for readiness probes and the startup summary.
        """
        start = time.perf_counter()
        success = False

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
            return True

        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        except (SQLAlchemyError, DatabaseInitializationError) as exc:
            logger.error(
                "Unexpected error during database health check",
                extra={
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return False

        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.debug(
                "Database health check completed",
                extra={"success": success, "duration_ms": duration_ms},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    async def _apply_statement_timeout(self, session: AsyncSession) -> None:
        config = self._config_snapshot
        if config is not None and config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for reads.

        For writes use `get_transaction()`.
        """
        factory = self._ensure_engine()

        async with factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
            finally:
                await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        Commits when the block exits normally, rolls back and re-raises on
        any exception.
        """
        factory = self._ensure_engine()

        start = time.perf_counter()
        async with factory() as session:
            try:
                await self._apply_statement_timeout(session)
                yield session
                await session.commit()

                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Database transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

            finally:
                await session.close()
