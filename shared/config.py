"""
Shared configuration management for the permissions engine.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PERMISSIONS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    service_name: str = Field(default="permissions")

    # Logging
    log_level: str = Field(default="info")
    json_logs: bool = Field(default=True)

    # Observability
    metrics_enabled: bool = Field(default=True)


def get_config(**overrides) -> BaseConfig:
    """Get configuration, with explicit overrides taking precedence over the environment."""
    return BaseConfig(**overrides)
