"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


_DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Values come from environment variables (or a ``.env`` file). Names are
    case-insensitive, so ``STORAGE_DIR`` sets ``storage_dir``.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./filevault.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(default=5, description="Number of persistent database connections")
    db_max_overflow: int = Field(default=10, description="Extra connections allowed during traffic bursts")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a connection is recycled")

    # Authentication
    jwt_secret_key: str = Field(
        default=_DEFAULT_JWT_SECRET,
        description="Signing secret for access tokens and object URLs (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    access_token_hours: int = Field(
        default=24,
        description="Lifetime of issued access tokens in hours"
    )

    # Object storage
    storage_dir: str = Field(
        default="./storage",
        description="Directory where the local object store keeps uploaded blobs"
    )
    object_url_ttl_seconds: int = Field(
        default=900,
        description="Lifetime of signed object URLs"
    )
    max_upload_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Largest accepted upload in bytes"
    )

    # Share links
    # Tokens are drawn from [A-Za-z0-9]; 32 chars is ~190 bits of entropy.
    share_token_length: int = Field(default=32, description="Length of generated share link tokens")
    share_token_max_attempts: int = Field(
        default=5,
        description="Collision retries before token generation gives up"
    )
    sweep_expired_links_on_startup: bool = Field(
        default=True,
        description="Physically delete expired share links when the app starts"
    )

    # New accounts
    create_default_folders: bool = Field(
        default=True,
        description="Seed Documents/Images/Videos/Music folders for new users"
    )

    # Activity log retention
    activity_retention_days: int = Field(
        default=365,
        description="Days to keep activity entries (0 = keep forever)"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=120,
        description="Maximum requests per client per minute"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('share_token_length')
    @classmethod
    def validate_token_length(cls, v: int) -> int:
        if v < 32:
            raise ValueError("share_token_length must be at least 32")
        return v

    @field_validator('share_token_max_attempts')
    @classmethod
    def validate_token_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("share_token_max_attempts must be at least 1")
        return v

    @property
    def uses_default_secret(self) -> bool:
        return self.jwt_secret_key == _DEFAULT_JWT_SECRET

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings instead.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.uses_default_secret:
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if self.database_url.startswith("sqlite"):
            errors.append("DATABASE_URL points at SQLite. Use PostgreSQL in production.")

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
