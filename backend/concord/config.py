"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache) — single instance per process
    - Engine limits (depth, timeouts, retention) are configuration, not code

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Persistence is opt-in (persist_invocations): the engine runs with no database
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Engine
    max_cascade_depth: int = 32
    enrichment_timeout_seconds: float = 10.0
    request_timeout_seconds: float = 15.0
    log_retention_cascades: int = 1000

    # HTTP boundary
    base_url: str = "/api"
    passthrough_default: bool = False
    passthrough_config_path: str | None = None

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        return "/" + v.strip("/")

    # Database (audit log of drained cascades)
    persist_invocations: bool = False
    database_url: str = "postgresql+asyncpg://concord:concord@db:5432/concord"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres URLs use postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
