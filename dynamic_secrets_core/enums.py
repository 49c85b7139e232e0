"""
Enums used across the dynamic_secrets_core package.

Kept in their own module so schemas, providers and services can share them
without circular imports.
"""

import enum


class ProviderType(str, enum.Enum):
    """Closed set of dynamic secret providers."""

    SQL_DATABASE = "sql-database"
    CASSANDRA = "cassandra"
    AWS_IAM = "aws-iam"
    REDIS = "redis"
    AWS_ELASTICACHE = "aws-elasticache"
    MONGO_ATLAS = "mongo-db-atlas"
    ELASTIC_SEARCH = "elastic-search"


class SqlClient(str, enum.Enum):
    """Relational database flavours supported by the SQL provider."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    ORACLE = "oracle"
    MSSQL = "mssql"


class ElasticSearchAuthType(str, enum.Enum):
    USER = "user"
    API_KEY = "api-key"


class LeaseStatus(str, enum.Enum):
    """Lifecycle states of a lease."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
