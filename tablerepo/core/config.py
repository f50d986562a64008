"""
Library configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
``tablerepo.db.session.create_engine()`` and ``setup_logging()`` read these
values; a ``Repository`` itself takes every collaborator explicitly.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

POSTGRES_REQUIRED = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_SERVER", "POSTGRES_DB")


class Settings(BaseSettings):
    """
    Central configuration for tablerepo.

    Two backends are supported: PostgreSQL through asyncpg (default) and
    SQLite through aiosqlite (``USE_SQLITE=true``), in memory unless
    ``SQLITE_PATH`` names a database file.
    """

    PROJECT_NAME: str = "tablerepo"

    # ── SQLite backend ──
    USE_SQLITE: bool = False
    SQLITE_PATH: str = ""

    # ── PostgreSQL backend ──
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    # ── Connection pool tuning (PostgreSQL only) ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a connection from the pool
    DB_POOL_RECYCLE: int = 1800  # seconds before a connection is recycled

    # ── Logging ──
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    @model_validator(mode="after")
    def _check_backend(self) -> "Settings":
        """Refuse a PostgreSQL configuration with blank connection fields."""
        if self.USE_SQLITE:
            return self
        blank = [name for name in POSTGRES_REQUIRED if not getattr(self, name)]
        if blank:
            raise ValueError(
                f"Missing PostgreSQL settings: {', '.join(blank)}. "
                f"Provide them through the environment or .env, "
                f"or set USE_SQLITE=true."
            )
        return self

    @property
    def DATABASE_URL(self) -> str:
        """Async SQLAlchemy URL for the configured backend."""
        if self.USE_SQLITE:
            if self.SQLITE_PATH:
                return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"
            return "sqlite+aiosqlite://"
        url = URL.create(
            "postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            database=self.POSTGRES_DB,
        )
        return url.render_as_string(hide_password=False)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
