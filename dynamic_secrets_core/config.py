"""
Centralized configuration management for the dynamic secret framework.

This module provides a unified configuration system with support for:
- Environment variables
- Per-provider connection timeouts
- Lease TTL policy
- Validation using Pydantic
"""

import os
from datetime import timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import EnvironmentVariable, LogLevel
from .enums import ProviderType


def _env_float(variable: EnvironmentVariable, default: float) -> float:
    return float(os.getenv(variable.value, default))


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ConnectionConfig(BaseModel):
    """Bounded timeouts applied to every external call."""

    connect_timeout: float = Field(
        default_factory=lambda: _env_float(EnvironmentVariable.CONNECT_TIMEOUT, 5.0),
        gt=0,
        description="Seconds allowed to open a connection",
    )
    request_timeout: float = Field(
        default_factory=lambda: _env_float(EnvironmentVariable.REQUEST_TIMEOUT, 10.0),
        gt=0,
        description="Seconds allowed for a single request or statement",
    )
    provider_timeouts: Dict[ProviderType, float] = Field(
        default_factory=dict,
        description="Per-provider override of connect_timeout",
    )

    def timeout_for(self, provider_type: ProviderType) -> float:
        """Connect timeout for a provider, falling back to the default."""
        return self.provider_timeouts.get(provider_type, self.connect_timeout)


class LeaseConfig(BaseModel):
    """Lease TTL policy."""

    default_ttl: timedelta = Field(
        default_factory=lambda: timedelta(
            seconds=_env_float(EnvironmentVariable.DEFAULT_TTL, 3600)
        ),
        description="TTL used when the caller does not pass one",
    )
    max_ttl: timedelta = Field(
        default_factory=lambda: timedelta(
            seconds=_env_float(EnvironmentVariable.MAX_TTL, 24 * 3600)
        ),
        description="Upper bound on any requested TTL",
    )
    allow_logical_renewal: bool = Field(
        default=True,
        description="Extend expireAt without touching the external system when it has no native renewal",
    )

    @model_validator(mode="after")
    def validate_ttl_bounds(self) -> "LeaseConfig":
        if self.default_ttl.total_seconds() <= 0:
            raise ValueError("default_ttl must be positive")
        if self.default_ttl > self.max_ttl:
            raise ValueError("default_ttl cannot exceed max_ttl")
        return self


class DatabaseConfig(BaseModel):
    """Connection settings for the SQL lease repository."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DATABASE_URL.value, "sqlite:///./dynamic_secrets.db"
        ),
        description="Database connection string",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")

    def __repr__(self) -> str:
        """Mask credentials embedded in the connection string."""
        scheme, _, rest = self.connection_string.partition("://")
        host_part = rest.rsplit("@", 1)[-1]
        return f"DatabaseConfig(connection_string='{scheme}://***@{host_part}')"


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DEBUG.value, "false").lower()
        == "true",
        description="Debug mode",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    connection: ConnectionConfig = Field(
        default_factory=ConnectionConfig, description="External connection timeouts"
    )
    lease: LeaseConfig = Field(default_factory=LeaseConfig, description="Lease TTL policy")
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Lease repository database"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
