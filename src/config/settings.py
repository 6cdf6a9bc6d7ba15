"""Application settings using Pydantic Settings.

Centralized configuration for the task distribution service. Settings are
loaded once at process start and are immutable afterwards; the application
factory receives the resulting object explicitly.

SECURITY: Production requires the following environment variables:
- APP_JWT_SECRET: Session token signing key (min 32 chars)

Generate secrets with: python -c "import secrets; print(secrets.token_hex(32))"
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database import DatabaseSettings

logger = logging.getLogger(__name__)

DEVELOPMENT_JWT_SECRET = "development-only-insecure-secret-key-32ch"

_RELAXED_ENVIRONMENTS = {"development", "dev", "local", "test", "testing"}


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Application info
    name: str = Field(default="Task Distribution Service", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # API settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=4000, description="API port")
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="Emit JSON formatted logs")

    # Session tokens
    # CRITICAL: Must be set via APP_JWT_SECRET in production
    jwt_secret: str = Field(
        default=DEVELOPMENT_JWT_SECRET,
        description="Session token signing key - MUST be set in production",
    )
    jwt_algorithm: str = Field(default="HS256", description="Session token algorithm")
    token_ttl_hours: int = Field(default=24, ge=1, description="Session token validity window")

    # Credential hashing
    bcrypt_rounds: int = Field(default=12, ge=12, le=16, description="bcrypt work factor")

    # Uploads
    upload_dir: Path = Field(default=Path("uploads"), description="Staging area for uploaded files")
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Largest accepted upload",
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @property
    def is_production(self) -> bool:
        """Check if running outside development/test environments."""
        return self.environment.lower() not in _RELAXED_ENVIRONMENTS

    @model_validator(mode="after")
    def _check_jwt_secret(self) -> "Settings":
        if len(self.jwt_secret) < 32:
            raise ValueError("APP_JWT_SECRET must be at least 32 characters for security")

        if self.jwt_secret == DEVELOPMENT_JWT_SECRET:
            if self.is_production:
                raise ValueError(
                    "APP_JWT_SECRET environment variable is required in production. "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
                )
            logger.warning(
                "APP_JWT_SECRET not set - using insecure development default. "
                "Set APP_JWT_SECRET for production."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Settings loaded from the environment on first call.
    """
    return Settings()
