"""Connection brokers: scoped, provider-specific clients with guaranteed teardown."""

from .aws_broker import AwsClientBroker, ElastiCacheClientBroker, IamClientBroker
from .base import ConnectionBroker, ca_file
from .cassandra_broker import CassandraConnectionBroker
from .elasticsearch_broker import ElasticSearchConnectionBroker
from .http_broker import MongoAtlasSessionBroker
from .redis_broker import RedisConnectionBroker
from .sql_broker import SqlConnectionBroker

__all__ = [
    "AwsClientBroker",
    "CassandraConnectionBroker",
    "ConnectionBroker",
    "ElastiCacheClientBroker",
    "ElasticSearchConnectionBroker",
    "IamClientBroker",
    "MongoAtlasSessionBroker",
    "RedisConnectionBroker",
    "SqlConnectionBroker",
    "ca_file",
]
