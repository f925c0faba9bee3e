"""Configuration loading for the land-titling registry.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Store configuration
    store_backend: Literal["sqlite", "postgresql"] = Field(
        default="sqlite",
        description="Registry store backend type",
    )
    store_sqlite_path: str = Field(
        default="./data/landtitle.db",
        description="SQLite database file path",
    )
    database_url: str = Field(
        default="",
        description="PostgreSQL connection URL",
    )
    store_pool_size: int = Field(
        default=5,
        description="Maximum number of pooled store connections",
    )

    # Identifier prefixes
    request_prefix: str = Field(
        default="SOL",
        description="Prefix for titling request codes (PREFIX-YYYY-NNNNNN)",
    )
    case_file_prefix: str = Field(
        default="EXP",
        description="Prefix for case file numbers (PREFIX-YYYY-NNNNNN)",
    )

    # Parcel validation thresholds
    parcel_search_radius_m: float = Field(
        default=50.0,
        description="Radius in meters searched for neighbours on registration",
    )
    parcel_overlap_threshold_m: float = Field(
        default=10.0,
        description="Distance in meters under which two parcels overlap",
    )
    parcel_duplicate_radius_m: float = Field(
        default=100.0,
        description="Radius in meters searched for potential duplicates",
    )
    address_similarity_threshold: float = Field(
        default=0.7,
        description="Address similarity ratio above which parcels are duplicates",
    )

    # Titling deadlines
    max_process_days: int = Field(
        default=90,
        description="Maximum processing time for a titling request in days",
    )
    delay_alert_days: int = Field(
        default=60,
        description="Days after which a request is flagged as possibly delayed",
    )
    urgent_margin_days: int = Field(
        default=15,
        description="Days before the deadline at which a request becomes urgent",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # Run mode
    run_mode: Literal["cli", "http"] = Field(
        default="cli",
        description="Run mode",
    )

    # HTTP configuration
    http_host: str = Field(
        default="127.0.0.1",
        description="Host to listen on for the HTTP API",
    )
    http_port: int = Field(
        default=8080,
        description="Port to listen on for the HTTP API",
    )
    http_api_key: str = Field(
        default="",
        description="API key for HTTP authentication (required for production)",
    )
    http_require_auth: bool = Field(
        default=False,
        description="Require API key authentication for HTTP endpoints",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose alert output",
    )

    @field_validator("request_prefix", "case_file_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Normalize prefixes to uppercase and reject blanks."""
        v = v.strip().upper()
        if not v.isalpha():
            raise ValueError("prefix must be a non-empty alphabetic string")
        return v

    @field_validator(
        "parcel_search_radius_m",
        "parcel_overlap_threshold_m",
        "parcel_duplicate_radius_m",
    )
    @classmethod
    def validate_radius(cls, v: float) -> float:
        """Ensure distances are positive."""
        if v <= 0:
            raise ValueError("radius must be positive")
        return v

    @field_validator("address_similarity_threshold")
    @classmethod
    def validate_similarity(cls, v: float) -> float:
        """Ensure the similarity threshold is a ratio."""
        if not 0 < v <= 1:
            raise ValueError("address_similarity_threshold must be in (0, 1]")
        return v

    @field_validator("max_process_days", "delay_alert_days", "urgent_margin_days")
    @classmethod
    def validate_days(cls, v: int) -> int:
        """Ensure day counts are positive."""
        if v <= 0:
            raise ValueError("day thresholds must be positive")
        return v

    @field_validator("store_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Ensure pool size is positive."""
        if v <= 0:
            raise ValueError("store_pool_size must be positive")
        return v

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        """Ensure HTTP port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("http_port must be between 1 and 65535")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
