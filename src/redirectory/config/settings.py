# src/redirectory/config/settings.py
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority, prefixed with REDIRECTORY_)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from redirectory.config.settings import get_settings
        settings = get_settings()
        store_path = settings.store_path
    """

    # Application Settings
    app_name: str = Field(
        default="redirectory",
        description="Application name"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    # Revision Store
    store_path: str = Field(
        default="redirectory.db",
        description="sqlite file holding the recipe/revision metadata"
    )

    # Capability tokens
    # Required: set REDIRECTORY_SIGNING_KEY. There is no usable default.
    signing_key: str = Field(
        min_length=16,
        description="Shared secret used to sign upload URLs"
    )

    upload_url_ttl_minutes: int = Field(
        default=30,
        description="Lifetime of a signed upload URL"
    )

    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL used in signed upload URLs (defaults to the request's base URL)"
    )

    # GitHub release store
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API root"
    )

    github_api_version: str = Field(
        default="2022-11-28",
        description="Value sent in the X-GitHub-Api-Version header"
    )

    github_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to every call to the release store"
    )

    supported_host: str = Field(
        default="github",
        description="The only reference `user` field this server will serve"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lowercase level names."""
        level = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if level not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return level

    @field_validator("upload_url_ttl_minutes", "github_timeout_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("github_api_url", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else v

    model_config = SettingsConfigDict(
        env_prefix="REDIRECTORY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
