"""
Provider registry.

Maps each provider type tag to the driver that implements it. The mapping is
built once and is read-only afterwards.
"""

import threading
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from ..enums import ProviderType
from ..exceptions import UnsupportedProviderError
from ..schemas.provider_schemas import coerce_provider_type
from .aws_elasticache_provider import AwsElastiCacheProvider
from .aws_iam_provider import AwsIamProvider
from .base import ProviderDriver
from .cassandra_provider import CassandraProvider
from .elastic_search_provider import ElasticSearchProvider
from .mongo_atlas_provider import MongoAtlasProvider
from .redis_provider import RedisProvider
from .sql_database_provider import SqlDatabaseProvider

DEFAULT_DRIVERS = (
    SqlDatabaseProvider,
    CassandraProvider,
    AwsIamProvider,
    RedisProvider,
    AwsElastiCacheProvider,
    MongoAtlasProvider,
    ElasticSearchProvider,
)


class ProviderRegistry:
    """Read-only lookup from provider type to driver."""

    def __init__(self, drivers: Iterable[ProviderDriver]):
        self._drivers: Mapping[ProviderType, ProviderDriver] = MappingProxyType(
            {driver.provider_type: driver for driver in drivers}
        )

    @classmethod
    def default(cls) -> "ProviderRegistry":
        """Registry holding one driver per supported provider type, with default brokers."""
        return cls(driver_class() for driver_class in DEFAULT_DRIVERS)

    @property
    def drivers(self) -> Mapping[ProviderType, ProviderDriver]:
        return self._drivers

    def resolve(self, provider_type: Union[ProviderType, str]) -> ProviderDriver:
        """
        Return the driver for a provider type tag.

        Raises:
            UnsupportedProviderError: If the tag is unknown or has no registered driver
        """
        resolved = coerce_provider_type(provider_type)
        try:
            return self._drivers[resolved]
        except KeyError as e:
            raise UnsupportedProviderError(resolved.value, cause=e) from e

    def __contains__(self, provider_type: object) -> bool:
        if isinstance(provider_type, ProviderType):
            return provider_type in self._drivers
        return any(str(provider_type) == known.value for known in self._drivers)


_registry: Optional[ProviderRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> ProviderRegistry:
    """Process-wide default registry, created on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ProviderRegistry.default()
        return _registry
