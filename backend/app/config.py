"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_env: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = ""  # Required - no insecure default
    database_pool_size: int = 10

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-pro"
    fix_max_output_tokens: int = 8192
    fix_temperature: float = 0.2

    # JWT
    jwt_secret: str = ""  # Required - no insecure default
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24

    # Scanner
    scan_max_depth: int = 5
    scan_heartbeat_every: int = 25

    # Stuck run detection
    run_stale_after_minutes: int = 30
    reaper_interval_seconds: int = 300

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    @field_validator("jwt_secret", mode="after")
    @classmethod
    def validate_secrets(cls, v: str, info) -> str:
        """Ensure secrets are set and not using insecure defaults."""
        insecure_values = {"", "change-me-in-production", "secret", "password", "development-secret-key"}
        if v.lower() in insecure_values:
            raise ValueError(
                f"{info.field_name} must be set to a secure value via environment variable. "
                f"Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
            )
        if len(v) < 32:
            raise ValueError(f"{info.field_name} must be at least 32 characters long")
        return v

    @field_validator("database_url", mode="after")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure database URL is set."""
        if not v:
            raise ValueError("database_url must be set via DATABASE_URL environment variable")
        return v

    @field_validator("scan_max_depth", "scan_heartbeat_every", mode="after")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
