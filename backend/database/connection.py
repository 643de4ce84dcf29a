"""PostgreSQL async connection management.

Owns the single process-wide SQLAlchemy ``AsyncEngine`` (asyncpg driver).
Nothing outside ``ConnectionManager`` holds the engine: callers either ask
for it through ``get_handle()`` or run SQL through ``execute()``.

Lifecycle: UNINITIALIZED -> CONNECTED -> CLOSED. ``initialize()`` after
``close()`` builds a fresh engine.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from backend.database.errors import (
    ConnectionClosedError,
    DatabaseConnectionError,
    NotInitializedError,
    QueryExecutionError,
)
from backend.logging_config import get_logger
from backend.settings import Settings, get_settings

logger = get_logger(name=__name__)

# Failures raised by SQLAlchemy/asyncpg when the server is unreachable or rejects us
DRIVER_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class QueryExecutor(Protocol):
    """Anything that can run parameterized SQL and return rows as dicts."""

    async def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        ...


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTED = "connected"
    CLOSED = "closed"


class ConnectionManager:
    """Single authoritative database handle for the process."""

    def __init__(self, engine_factory: Callable[..., AsyncEngine] = create_async_engine):
        self._engine_factory = engine_factory
        self._engine: Optional[AsyncEngine] = None
        self._state = ConnectionState.UNINITIALIZED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    async def initialize(self, settings: Optional[Settings] = None) -> AsyncEngine:
        """Create the engine and prove connectivity with a round trip.

        Calling this while already connected returns the existing engine.

        Raises:
            DatabaseConnectionError: If the driver cannot connect or authenticate.
        """
        settings = settings or get_settings()

        async with self._lock:
            if self._state is ConnectionState.CONNECTED and self._engine is not None:
                logger.debug("PostgreSQL engine already initialized, reusing it")
                return self._engine

            engine = self._engine_factory(
                settings.database_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                connect_args={"timeout": settings.db_connect_timeout},
                echo=False,
            )

            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1 AS test"))
            except DRIVER_ERRORS as e:
                await engine.dispose()
                error_msg = f"Failed to connect to PostgreSQL: {e}"
                logger.error(error_msg)
                raise DatabaseConnectionError(error_msg) from e
            except asyncio.CancelledError:
                await engine.dispose()
                raise

            self._engine = engine
            self._state = ConnectionState.CONNECTED
            logger.info(
                "PostgreSQL async engine initialized (pool_size={}, max_overflow={})",
                settings.db_pool_size,
                settings.db_max_overflow,
            )
            return engine

    def get_handle(self) -> AsyncEngine:
        """Return the engine. Raises if not initialized or already closed."""
        if self._state is ConnectionState.CLOSED:
            raise ConnectionClosedError(
                "PostgreSQL engine has been closed. Call initialize() to reconnect."
            )
        if self._engine is None:
            raise NotInitializedError(
                "PostgreSQL engine not initialized. Call initialize() first."
            )
        return self._engine

    async def verify_connection(self) -> None:
        """Liveness probe: run ``SELECT 1`` against the handle.

        Raises:
            DatabaseConnectionError: If the database does not answer.
        """
        engine = self.get_handle()
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1 AS test"))
        except DRIVER_ERRORS as e:
            logger.warning("PostgreSQL liveness probe failed: {}", e)
            raise DatabaseConnectionError(f"PostgreSQL is unreachable: {e}") from e
        logger.debug("PostgreSQL liveness probe passed")

    async def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Run parameterized SQL and return the rows as plain dicts.

        Raises:
            NotInitializedError / ConnectionClosedError: Lifecycle misuse.
            QueryExecutionError: If the driver fails to run the statement.
        """
        engine = self.get_handle()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(sql), dict(params or {}))
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings()]
        except DRIVER_ERRORS as e:
            raise QueryExecutionError(f"Query failed: {e}") from e

    async def close(self) -> None:
        """Dispose the engine. Safe to call more than once."""
        async with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                return
            engine = self._engine
            # Readers see CLOSED before disposal starts
            self._state = ConnectionState.CLOSED
            self._engine = None
            if engine is not None:
                await engine.dispose()
            logger.info("PostgreSQL engine disposed")


_default_manager: Optional[ConnectionManager] = None


def get_database_manager() -> ConnectionManager:
    """Return the process-default manager, creating it on first use."""
    global _default_manager
    if _default_manager is None:
        _default_manager = ConnectionManager()
    return _default_manager
