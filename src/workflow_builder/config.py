"""Configuration management for the workflow builder.

Provides environment-based configuration using Pydantic Settings.
All settings can be overridden via environment variables with the
WORKFLOW_BUILDER_ prefix.

Example:
    export WORKFLOW_BUILDER_LOG_LEVEL=DEBUG
    export WORKFLOW_BUILDER_LOG_FORMAT=json
    export WORKFLOW_BUILDER_CACHE_TTL_MS=600000
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BuilderSettings(BaseSettings):
    """Configuration settings for validation, optimization and the CLI.

    Loads settings from environment variables (WORKFLOW_BUILDER_ prefix) and .env file.
    Settings cascade: .env file < environment variables < explicit overrides.

    Configuration Groups:
        Logging: Level and renderer for structlog output
        Validation: Thresholds used by the validation rules
        Optimization: Defaults used by the optimization analyzer
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_BUILDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format (json or console)")

    # Validation
    long_timeout_threshold_ms: int = Field(
        default=300000,
        gt=0,
        description="Effective step timeouts above this produce a warning",
    )

    # Optimization
    default_step_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Timeout assumed for steps without an explicit timeout",
    )
    cache_ttl_ms: int = Field(
        default=3600000,
        gt=0,
        description="TTL recommended for cacheable feature steps",
    )
    max_recommended_timeout_ms: int = Field(
        default=120000,
        gt=0,
        description="Upper bound for recommended feature step timeouts",
    )
