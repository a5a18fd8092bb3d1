"""
Database Service - engine and session lifecycle.

Purpose
-------
Own the single AsyncEngine and `async_sessionmaker` that repositories use
when no explicit session factory is supplied.

Responsibilities
----------------
- Initialize and dispose one AsyncEngine with an appropriate pool
- Provide async context managers for plain sessions and atomic transactions
- Expose a lightweight health check
- Idempotent initialization guarded by an asyncio lock

Non-Responsibilities
--------------------
- Schema management (use Alembic or `Base.metadata.create_all`)
- Caching, batching, or any entity logic

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` commits on success and rolls back on any exception
- Sessions are created with `expire_on_commit=False` so records stay
  readable after the transaction that loaded them has closed

**Connection Pooling**:
- In-memory SQLite uses StaticPool so every session sees the same database
- Testing environments use NullPool (no connection reuse)
- Everything else uses the dialect's async queue pool sized from Config

Usage Example
-------------
>>> await DatabaseService.initialize("postgresql+asyncpg://app@db/app")
>>> async with DatabaseService.get_transaction() as session:
...     session.add(User(email="a@x.com"))
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, Pool, StaticPool

from alchemy_datasource.core.config.config import Config
from alchemy_datasource.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


def _is_memory_sqlite(url: str) -> bool:
    if not url.startswith("sqlite"):
        return False
    # "sqlite+aiosqlite://" with no path is also an in-memory database
    return ":memory:" in url or url.split("://", 1)[-1] in ("", "/")


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable snapshot of the engine configuration."""

    url: str
    echo: bool
    pool_class: Optional[Type[Pool]]
    pool_size: int
    max_overflow: int
    pool_recycle: int

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize() / shutdown()
    - engine() / session_factory()
    - get_session() / get_transaction()
    - health_check()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        if _is_memory_sqlite(database_url):
            pool_class: Optional[Type[Pool]] = StaticPool
        elif Config.is_testing():
            pool_class = NullPool
        else:
            pool_class = None

        return _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
        )

    @classmethod
    async def initialize(cls, url: Optional[str] = None, **engine_kwargs: Any) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: if already initialized, returns immediately.

        Parameters
        ----------
        url:
            SQLAlchemy async URL; defaults to `Config.DATABASE_URL`.
        engine_kwargs:
            Extra keyword arguments for `create_async_engine`, overriding the
            Config-derived ones.

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(url)

                kwargs: dict[str, Any] = {"echo": config.echo}
                if config.pool_class is StaticPool:
                    kwargs["poolclass"] = StaticPool
                    kwargs["connect_args"] = {"check_same_thread": False}
                elif config.pool_class is NullPool:
                    kwargs["poolclass"] = NullPool
                elif not config.is_sqlite:
                    kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_pre_ping": True,
                        }
                    )
                kwargs.update(engine_kwargs)

                cls._engine = create_async_engine(config.url, **kwargs)
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
                cls._config_snapshot = config

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": (
                            kwargs["poolclass"].__name__ if "poolclass" in kwargs else "default"
                        ),
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call multiple times."""
        async with cls._init_lock:
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def engine(cls) -> AsyncEngine:
        cls._ensure_initialized()
        assert cls._engine is not None
        return cls._engine

    @classmethod
    def session_factory(cls) -> async_sessionmaker[AsyncSession]:
        cls._ensure_initialized()
        assert cls._session_factory is not None
        return cls._session_factory

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        Use for read-only work or manual transaction control.
        """
        factory = cls.session_factory()
        start = time.perf_counter()
        async with factory() as session:
            logger.debug("Database session opened")
            try:
                yield session
            finally:
                duration_ms = (time.perf_counter() - start) * 1000.0
                logger.debug("Database session closed", extra={"duration_ms": duration_ms})

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a session wrapped in an atomic transaction.

        Commits on normal exit, rolls back and re-raises on any exception.
        """
        factory = cls.session_factory()
        start = time.perf_counter()
        async with factory() as session:
            async with session.begin():
                yield session
            duration_ms = (time.perf_counter() - start) * 1000.0
            logger.debug("Database transaction committed", extra={"duration_ms": duration_ms})

    @classmethod
    async def health_check(cls) -> bool:
        """Execute `SELECT 1`; False when not initialized or unreachable."""
        if not cls.is_initialized():
            return False

        start = time.perf_counter()
        try:
            async with cls.get_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        logger.debug(
            "Database health check passed",
            extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
        )
        return True
