"""
Constants for the dynamic secret provider framework.

This module centralizes the magic strings used throughout the package.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    APP_ENV = "APP_ENV"
    DEBUG = "DEBUG"
    LOG_LEVEL = "LOG_LEVEL"
    DATABASE_URL = "DATABASE_URL"
    CONNECT_TIMEOUT = "DYNAMIC_SECRET_CONNECT_TIMEOUT"
    REQUEST_TIMEOUT = "DYNAMIC_SECRET_REQUEST_TIMEOUT"
    DEFAULT_TTL = "DYNAMIC_SECRET_DEFAULT_TTL"
    MAX_TTL = "DYNAMIC_SECRET_MAX_TTL"


class TemplateVariable(str, Enum):
    """Variables available to statement templates."""

    USERNAME = "username"
    PASSWORD = "password"
    EXPIRATION = "expiration"
    DATABASE = "database"
    KEYSPACE = "keyspace"


# Atlas Admin API
MONGO_ATLAS_API_URL = "https://cloud.mongodb.com/api/atlas/v2"
MONGO_ATLAS_ACCEPT_HEADER = "application/vnd.atlas.2023-02-01+json"
MONGO_ATLAS_AUTH_DATABASE = "admin"
MONGO_ATLAS_SCOPE_TYPES = frozenset({"CLUSTER", "DATA_LAKE", "STREAM"})

# Timestamp layout substituted for {{expiration}}
EXPIRATION_FORMAT = "%Y-%m-%d %H:%M:%S"
