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


class Settings(BaseSettings):
    """
    Forum core settings with validation.

    Values come from environment variables (case-insensitive) or a ``.env``
    file. Services receive a Settings instance through their constructor and
    fall back to the module-level ``settings`` object.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./forum.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Search
    search_default_limit: int = Field(
        default=50,
        description="Page size used when a search request does not give one"
    )
    search_max_limit: int = Field(
        default=200,
        description="Upper bound for the per-list search page size"
    )
    search_max_query_length: int = Field(
        default=500,
        description="Longest raw search query accepted, in characters"
    )

    # Permissions
    # Categories without any permission rows are always viewable. Whether
    # they also accept new threads and replies is a deployment decision.
    public_categories_allow_posting: bool = Field(
        default=False,
        description="Grant post/reply on categories that have no permission rows"
    )

    # Maintenance CLI: platform administrators known to the static identity provider
    admin_user_ids: str = Field(
        default="",
        description="Comma-separated user ids treated as platform administrators"
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

    def get_admin_user_ids(self) -> List[str]:
        """Parse ``admin_user_ids`` into a list, dropping blanks."""
        return [uid.strip() for uid in self.admin_user_ids.split(',') if uid.strip()]

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        Raises:
            ConfigurationError: If production config is unsafe.
        """
        errors: list[str] = []

        if self.search_default_limit > self.search_max_limit:
            errors.append(
                "SEARCH_DEFAULT_LIMIT is larger than SEARCH_MAX_LIMIT."
            )

        if self.database_url.startswith("sqlite"):
            errors.append(
                "DATABASE_URL points at SQLite. "
                "Use PostgreSQL for concurrent production traffic."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is invalid:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
