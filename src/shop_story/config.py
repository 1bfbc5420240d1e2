"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "shop-story"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # Redis (event store + cache)
    # -------------------------------------------------------------------------
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Event Store
    # -------------------------------------------------------------------------
    store_key_prefix: str = "shop-story"
    max_events_stored: int = Field(default=1000, ge=1)
    max_sessions_stored: int = Field(default=50, ge=1)

    # -------------------------------------------------------------------------
    # Commerce Curation
    # -------------------------------------------------------------------------
    catalog_path: str | None = None
    bundle_discount_rate: float = Field(default=0.15, ge=0.0, lt=1.0)
    min_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    max_sets_per_user: int = 10
    max_recommendations: int = 20
    curation_cache_ttl_seconds: int = 900


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
