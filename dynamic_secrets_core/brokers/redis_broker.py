"""
Redis connection broker.
"""

from contextlib import ExitStack

import redis
from redis.exceptions import AuthenticationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..enums import ProviderType
from ..schemas.provider_schemas import RedisInputs
from .base import ConnectionBroker


class RedisConnectionBroker(ConnectionBroker):
    """Opens a redis-py client authenticated as the configured admin ACL user."""

    provider_type = ProviderType.REDIS

    def _open(self, inputs: RedisInputs, stack: ExitStack) -> redis.Redis:
        client = redis.Redis(
            host=inputs.host,
            port=inputs.port,
            username=inputs.username,
            password=inputs.password,
            ssl=bool(inputs.ca),
            ssl_ca_data=inputs.ca,
            socket_connect_timeout=self.connect_timeout,
            socket_timeout=self.request_timeout,
            decode_responses=True,
        )
        stack.callback(self._close_quietly, client.close, "redis client")
        return client

    def is_connection_error(self, error: Exception) -> bool:
        return isinstance(
            error, (RedisConnectionError, RedisTimeoutError, AuthenticationError)
        ) or super().is_connection_error(error)
