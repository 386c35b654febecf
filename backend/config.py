"""
Configuration and settings for the founders backend.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (any SQLAlchemy URL; MySQL/Postgres in production)
    database_url: str = Field(
        default="sqlite+pysqlite:///founders.db", validation_alias="DATABASE_URL"
    )
    db_timeout_seconds: float = Field(default=5.0, validation_alias="DB_TIMEOUT_SECONDS")

    # Local image uploads
    upload_dir: str = Field(default="uploads", validation_alias="UPLOAD_DIR")
    uploads_url_prefix: str = Field(default="/uploads")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="FOUNDERS_USE_IN_MEMORY_BACKENDS"
    )

    # HTTP server
    cors_origins: str = Field(default="*", validation_alias="CORS_ORIGINS")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=5000, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
