"""
Environment-backed configuration.

Values are read from the process environment and an optional ``.env`` file
in the working directory, validated once, and then mapped onto Django
settings in ``click2leads.settings``.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvSettings(BaseSettings):
    """Deployment knobs for the content service."""

    SECRET_KEY: str = Field(
        default="dev-secret-key-change-in-production",
        min_length=16,
        description="Django secret key",
    )
    DEBUG: bool = Field(default=False, description="Enable Django debug mode")
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment",
    )
    ALLOWED_HOSTS: str = Field(
        default="localhost,127.0.0.1",
        description="Allowed host names (comma-separated)",
    )

    DATABASE_PATH: str = Field(
        default="click2leads.sqlite3",
        description="SQLite file, relative to the project root unless absolute",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root level for application loggers",
    )

    REDIS_URL: Optional[str] = Field(
        default=None,
        description="Shared cache for content listings (e.g. redis://localhost:6379/1)",
    )
    CONTENT_CACHE_TIMEOUT: int = Field(
        default=300,
        ge=0,
        description="Seconds a cached section listing stays valid; used only with REDIS_URL",
    )
    CONTENT_SEED_ON_MIGRATE: bool = Field(
        default=True,
        description="Seed default content and the bootstrap admin after migrate",
    )

    # The bootstrap password is public; change it after install with
    # ``manage.py set_admin_password``.
    BOOTSTRAP_ADMIN_USERNAME: str = Field(default="admin", min_length=1)
    BOOTSTRAP_ADMIN_PASSWORD: str = Field(default="admin123", min_length=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def allowed_hosts_list(self) -> list[str]:
        return [host.strip() for host in self.ALLOWED_HOSTS.split(",") if host.strip()]

    @property
    def content_cache_timeout(self) -> int:
        # Per-process caches would let workers serve listings another worker
        # already overwrote, so caching needs a shared backend.
        return self.CONTENT_CACHE_TIMEOUT if self.REDIS_URL else 0

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache
def get_env_settings() -> EnvSettings:
    return EnvSettings()
