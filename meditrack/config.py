from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL, make_url
from functools import lru_cache
from typing import List
import os

DEV_JWT_SECRET = "meditrack-dev-secret"


class Settings(BaseSettings):
    """Global app settings loaded from environment.
    - Keep defaults light for dev.
    - Override via .env or real env vars.
    """

    APP_NAME: str = "meditrack_api"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = False

    # PostgreSQL connection
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "meditrack_db"
    # Managed Postgres requires TLS; certificates are not verified
    DB_SSL: bool = True
    # Full SQLAlchemy URL, overrides the DB_* fields above when set
    DATABASE_URL: str | None = None

    # Connection pool
    DB_POOL_MAX: int = 10
    DB_POOL_IDLE_TIMEOUT_SECONDS: float = 30
    DB_CONNECT_TIMEOUT_SECONDS: float = 10
    DB_ACQUIRE_TIMEOUT_SECONDS: float = 10
    DB_CREATE_SCHEMA: bool = False

    # JWT settings
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24h
    # Upper bound for any TTL requested by callers
    ACCESS_TOKEN_MAX_MINUTES: int = 60 * 24 * 7

    # bcrypt cost factor
    BCRYPT_ROUNDS: int = 10

    # Raw CORS string from env (comma-separated); parsed via cors_origins property
    CORS_ORIGINS: str | None = None

    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "20/minute"

    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def cors_origins(self) -> List[str]:
        """Return CORS origins as a list, parsing comma-separated env string."""
        raw = self.CORS_ORIGINS or os.getenv("CORS_ORIGINS", "") or ""
        return [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def database_url(self) -> URL:
        if self.DATABASE_URL:
            return make_url(self.DATABASE_URL)
        return URL.create(
            "postgresql+asyncpg",
            username=self.DB_USER,
            password=self.DB_PASSWORD or None,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
        )

    @property
    def uses_dev_secret(self) -> bool:
        return self.JWT_SECRET == DEV_JWT_SECRET


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
