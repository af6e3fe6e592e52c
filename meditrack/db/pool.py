"""Bounded pool of database connections with an explicit lifecycle.

The pool is constructed once per application and passed to its consumers;
``initialize()`` and ``close()`` bracket its lifetime.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import exc as sa_exc, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from meditrack.config import Settings
from meditrack.exceptions import DatabaseConnectionError, InfrastructureError, PoolExhausted
from meditrack.models import metadata
from meditrack.utils.logger import get_logger

logger = get_logger("db.pool")


class ConnectionPool:
    """Owns the async engine (and therefore the connection pool)."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    async def initialize(self) -> AsyncEngine:
        """Create the pool; calling it again returns the existing engine.

        Engine construction does not suspend, so concurrent first callers
        cannot interleave here and all get the same engine.
        """
        if self._engine is None:
            self._engine = self._create_engine()
            logger.info(
                f"Connection pool created: backend={self._settings.database_url.get_backend_name()}, "
                f"max={self._settings.DB_POOL_MAX}"
            )
        return self._engine

    def _create_engine(self) -> AsyncEngine:
        s = self._settings
        url = s.database_url
        connect_args = {"timeout": s.DB_CONNECT_TIMEOUT_SECONDS}
        if url.get_backend_name() == "postgresql" and s.DB_SSL:
            ctx = ssl.create_default_context()
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            connect_args["ssl"] = ctx
        try:
            return create_async_engine(
                url,
                poolclass=AsyncAdaptedQueuePool,
                pool_size=s.DB_POOL_MAX,
                max_overflow=0,
                pool_timeout=s.DB_ACQUIRE_TIMEOUT_SECONDS,
                pool_recycle=s.DB_POOL_IDLE_TIMEOUT_SECONDS,
                pool_pre_ping=True,
                connect_args=connect_args,
                echo=s.APP_DEBUG,
            )
        except (sa_exc.SQLAlchemyError, ImportError) as e:
            logger.error(f"Failed to create database connection pool: {e}")
            raise DatabaseConnectionError("Failed to create database connection pool") from e

    async def acquire(self) -> AsyncConnection:
        """Check out an exclusive connection, waiting at most DB_ACQUIRE_TIMEOUT_SECONDS."""
        if self._engine is None:
            raise DatabaseConnectionError("Connection pool is not initialized")
        conn = self._engine.connect()
        try:
            await conn.start()
        except sa_exc.TimeoutError as e:
            logger.warning(
                f"Pool exhausted: no connection within {self._settings.DB_ACQUIRE_TIMEOUT_SECONDS}s"
            )
            raise PoolExhausted("No database connection available") from e
        except (sa_exc.DBAPIError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to database: {e}")
            raise DatabaseConnectionError("Failed to connect to database") from e
        return conn

    async def release(self, conn: AsyncConnection) -> None:
        """Return a connection to the pool."""
        if not conn.closed:
            await conn.close()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        """Acquire a connection and release it on every exit path, cancellation included."""
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    def checked_out(self) -> int:
        if self._engine is None:
            return 0
        return self._engine.pool.checkedout()

    async def ping(self) -> bool:
        """Round-trip a trivial statement; used by the health check."""
        try:
            await self.initialize()
            async with self.connection() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except InfrastructureError:
            return False
        except sa_exc.SQLAlchemyError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def create_schema(self) -> None:
        """Create the tables this core owns if they do not exist."""
        engine = await self.initialize()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except (sa_exc.DBAPIError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to create schema: {e}")
            raise DatabaseConnectionError("Failed to create database schema") from e
        logger.info("Database schema ensured")

    async def close(self) -> None:
        """Dispose of every pooled connection. Safe to call more than once."""
        engine, self._engine = self._engine, None
        if engine is not None:
            await engine.dispose()
            logger.info("Database connection pool closed")
