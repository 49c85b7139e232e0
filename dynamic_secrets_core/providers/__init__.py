"""Provider drivers, one per supported external system."""

from .aws_elasticache_provider import AwsElastiCacheProvider
from .aws_iam_provider import AwsIamProvider
from .base import ProviderDriver, StatementProviderDriver
from .cassandra_provider import CassandraProvider
from .elastic_search_provider import ElasticSearchProvider
from .mongo_atlas_provider import MongoAtlasProvider
from .redis_provider import RedisProvider
from .registry import ProviderRegistry, get_registry
from .sql_database_provider import SqlDatabaseProvider

__all__ = [
    "AwsElastiCacheProvider",
    "AwsIamProvider",
    "CassandraProvider",
    "ElasticSearchProvider",
    "MongoAtlasProvider",
    "ProviderDriver",
    "ProviderRegistry",
    "RedisProvider",
    "SqlDatabaseProvider",
    "StatementProviderDriver",
    "get_registry",
]
