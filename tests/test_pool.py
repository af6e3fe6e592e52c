"""Tests for the connection pool manager."""

import asyncio

import pytest
from sqlalchemy import text

from meditrack.config import Settings
from meditrack.db.pool import ConnectionPool
from meditrack.exceptions import DatabaseConnectionError, PoolExhausted

pytestmark = pytest.mark.anyio


def small_pool_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'pool.db'}",
        DB_POOL_MAX=1,
        DB_ACQUIRE_TIMEOUT_SECONDS=0.2,
        LOG_TO_FILE=False,
    )
    values.update(overrides)
    return Settings(**values)


class TestLifecycle:
    async def test_initialize_is_idempotent(self, settings):
        pool = ConnectionPool(settings)
        first = await pool.initialize()
        second = await pool.initialize()
        assert first is second
        assert pool.is_initialized
        await pool.close()

    async def test_concurrent_first_initialize_creates_one_engine(self, settings):
        pool = ConnectionPool(settings)
        engines = await asyncio.gather(*(pool.initialize() for _ in range(5)))
        assert all(engine is engines[0] for engine in engines)
        assert pool.engine is engines[0]
        await pool.close()

    async def test_acquire_before_initialize_fails(self, settings):
        pool = ConnectionPool(settings)
        with pytest.raises(DatabaseConnectionError):
            await pool.acquire()

    async def test_close_then_reinitialize(self, settings):
        pool = ConnectionPool(settings)
        first = await pool.initialize()
        await pool.close()
        assert not pool.is_initialized
        with pytest.raises(DatabaseConnectionError):
            await pool.acquire()

        second = await pool.initialize()
        assert second is not first
        async with pool.connection() as conn:
            assert (await conn.execute(text("SELECT 1"))).scalar() == 1
        await pool.close()

    async def test_close_is_safe_when_never_initialized(self, settings):
        pool = ConnectionPool(settings)
        await pool.close()
        await pool.close()


class TestAcquireRelease:
    async def test_release_returns_connection(self, pool):
        conn = await pool.acquire()
        assert pool.checked_out() == 1
        await pool.release(conn)
        assert pool.checked_out() == 0

    async def test_context_manager_releases_on_error(self, pool):
        with pytest.raises(RuntimeError):
            async with pool.connection():
                assert pool.checked_out() == 1
                raise RuntimeError("boom")
        assert pool.checked_out() == 0

    async def test_cancellation_releases_connection(self, pool):
        acquired = asyncio.Event()

        async def hold():
            async with pool.connection():
                acquired.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(hold())
        await acquired.wait()
        assert pool.checked_out() == 1
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert pool.checked_out() == 0

    async def test_caller_timeout_releases_connection(self, pool):
        async def slow():
            async with pool.connection():
                await asyncio.sleep(10)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(slow(), timeout=0.1)
        assert pool.checked_out() == 0


class TestExhaustion:
    async def test_excess_acquisition_fails_with_pool_exhausted(self, tmp_path):
        pool = ConnectionPool(small_pool_settings(tmp_path))
        await pool.initialize()
        held = await pool.acquire()
        try:
            with pytest.raises(PoolExhausted):
                await pool.acquire()
        finally:
            await pool.release(held)
        await pool.close()

    async def test_waiter_gets_connection_once_released(self, tmp_path):
        pool = ConnectionPool(small_pool_settings(tmp_path, DB_ACQUIRE_TIMEOUT_SECONDS=2))
        await pool.initialize()
        held = await pool.acquire()

        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0.05)
        assert not waiter.done()

        await pool.release(held)
        conn = await asyncio.wait_for(waiter, timeout=2)
        assert pool.checked_out() == 1
        await pool.release(conn)
        await pool.close()


class TestConnectionFailure:
    async def test_unreachable_store_raises_connection_error(self, tmp_path):
        missing = tmp_path / "no-such-dir" / "x.db"
        pool = ConnectionPool(small_pool_settings(tmp_path, DATABASE_URL=f"sqlite+aiosqlite:///{missing}"))
        await pool.initialize()
        with pytest.raises(DatabaseConnectionError):
            await pool.acquire()
        assert await pool.ping() is False
        await pool.close()

    async def test_ping_healthy_pool(self, pool):
        assert await pool.ping() is True
