"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "StayHub Payments"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "stayhub"
    postgres_password: str = Field(default="stayhub_secret")
    postgres_db: str = "stayhub"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    database_url_override: Optional[str] = None

    @computed_field
    @property
    def database_url(self) -> str:
        """Async database connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Sync PostgreSQL connection URL for Alembic."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Payme merchant webhook
    payme_merchant_id: Optional[str] = None
    payme_secret_key: Optional[str] = None
    payme_test_key: Optional[str] = None
    payme_login: str = "Paycom"
    payme_transaction_timeout_minutes: int = 12
    payme_timezone: str = "Asia/Tashkent"
    payme_cancel_reason_expired: int = 4
    payme_sweep_interval_seconds: int = 300

    @property
    def active_payme_key(self) -> str | None:
        """Merchant key Payme is expected to send in this environment."""
        if self.environment == "production":
            return self.payme_secret_key or self.payme_test_key
        return self.payme_test_key or self.payme_secret_key

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
