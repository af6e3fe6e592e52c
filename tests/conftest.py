"""Pytest configuration and fixtures."""

import os

# Must be set before meditrack is imported: logger and limiter read settings at import
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient

from meditrack.config import Settings
from meditrack.db.facade import Database
from meditrack.db.pool import ConnectionPool
from meditrack.main import create_app
from meditrack.security import PasswordHasher, TokenService
from meditrack.services.auth_service import AuthService

TEST_JWT_SECRET = "test-secret-key"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'meditrack_test.db'}",
        DB_POOL_MAX=5,
        DB_ACQUIRE_TIMEOUT_SECONDS=2,
        DB_CONNECT_TIMEOUT_SECONDS=5,
        JWT_SECRET=TEST_JWT_SECRET,
        BCRYPT_ROUNDS=4,
        LOG_TO_FILE=False,
        RATE_LIMIT_ENABLED=False,
    )


@pytest.fixture
async def pool(settings) -> AsyncGenerator:
    """Initialized pool with the staff table created."""
    pool = ConnectionPool(settings)
    await pool.initialize()
    await pool.create_schema()
    yield pool
    await pool.close()


@pytest.fixture
def db(pool) -> Database:
    return Database(pool)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret=TEST_JWT_SECRET)


@pytest.fixture
def auth_service(db, hasher, tokens, settings) -> AuthService:
    return AuthService(db, hasher, tokens, settings)


@pytest.fixture
async def client(settings, pool) -> AsyncGenerator:
    """HTTP client against an app whose pool is the test pool."""
    # ASGITransport does not run lifespan; the pool is already initialized
    app = create_app(settings, pool=pool)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def staff_payload():
    """Sample registration payload."""
    return {
        "email": "a@x.com",
        "password": "Abcdef1!",
        "first_name": "A",
        "last_name": "B",
        "role": "Nurse",
    }
