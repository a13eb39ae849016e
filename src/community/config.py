"""Engine configuration using pydantic-settings.

This module defines the EngineSettings class that reads configuration
from environment variables with the COMMUNITY_ prefix. Every field has a
default, so the engine starts in in-memory mode when nothing is set.

A durable store is used only when COMMUNITY_DATABASE_URL is provided;
otherwise knowledge nodes, follows, events, RSVPs and devotion logs live
in the process-wide fallback store.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class EngineSettings(BaseSettings):
    """Engine configuration from environment variables.

    All environment variables are prefixed with COMMUNITY_
    (e.g., COMMUNITY_DATABASE_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="COMMUNITY_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Database Configuration
    # -------------------------------------------------------------------------
    # PostgreSQL connection string; None selects in-memory mode
    database_url: Optional[str] = None

    db_min_pool_size: int = 2
    db_max_pool_size: int = 10

    # Per-call timeout applied to every live store operation
    store_timeout_seconds: float = 5.0

    # -------------------------------------------------------------------------
    # Retrieval Configuration
    # -------------------------------------------------------------------------
    # Results returned when a query or invocation does not ask for a count
    default_top_k: int = 5

    # -------------------------------------------------------------------------
    # Experience Configuration
    # -------------------------------------------------------------------------
    # Maximum number of recent posts scanned for trending topics
    trending_scan_limit: int = 1000

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = True

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 4000

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate the database URL format when one is provided."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "database_url must start with postgresql:// or postgres://"
            )
        return v

    @field_validator("db_min_pool_size", "db_max_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Validate that pool sizes are positive."""
        if v < 1:
            raise ValueError("pool sizes must be at least 1")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_store_timeout(cls, v: float) -> float:
        """Validate that the store timeout is positive."""
        if v <= 0:
            raise ValueError("store_timeout_seconds must be positive")
        return v

    @field_validator("default_top_k")
    @classmethod
    def validate_default_top_k(cls, v: int) -> int:
        """Validate that the default result count is in range."""
        if not 1 <= v <= 50:
            raise ValueError("default_top_k must be between 1 and 50")
        return v

    @field_validator("trending_scan_limit")
    @classmethod
    def validate_trending_scan_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("trending_scan_limit must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level and reject unknown names."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def uses_durable_store(self) -> bool:
        return self.database_url is not None


def get_settings() -> EngineSettings:
    """Create and return an EngineSettings instance.

    Returns:
        EngineSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a provided value is invalid.
    """
    return EngineSettings()
