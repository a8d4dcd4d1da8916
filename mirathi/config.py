"""
Mirathi Configuration Module
============================

Centralized configuration management using Pydantic Settings.

Loads configuration from:
    1. Environment variables
    2. .env file (if present)
    3. Default values

Usage:
    from mirathi.config import settings

    print(settings.postgres_async_dsn)
    print(settings.concurrency_max_retries)

Author: Mirathi Team
Version: 1.0.0
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Naming convention: UPPER_SNAKE_CASE in env, lower_snake_case in code.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(default="mirathi-readiness", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Render logs as JSON")

    # =========================================================================
    # PostgreSQL
    # =========================================================================

    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_db: str = Field(default="mirathi", description="PostgreSQL database")
    postgres_user: str = Field(default="mirathi_user", description="PostgreSQL user")
    postgres_password: str = Field(
        default="mirathi_password_change_me",
        description="PostgreSQL password"
    )

    @property
    def postgres_dsn(self) -> str:
        """Get PostgreSQL connection string."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def postgres_async_dsn(self) -> str:
        """Get async PostgreSQL connection string for asyncpg."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # =========================================================================
    # Readiness Assessment
    # =========================================================================

    auto_recalculate_days: int = Field(
        default=7,
        ge=1,
        description="Age (days) after which an assessment is considered stale"
    )
    concurrency_max_retries: int = Field(
        default=3,
        ge=0,
        description="Reload-and-retry attempts after a version conflict"
    )
    sweep_batch_size: int = Field(
        default=100,
        ge=1,
        description="Assessments processed per auto-resolve sweep"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once.

    Returns:
        Settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
