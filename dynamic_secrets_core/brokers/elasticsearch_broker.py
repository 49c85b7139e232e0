"""
Elasticsearch connection broker.
"""

import ssl
from contextlib import ExitStack

from elasticsearch import AuthenticationException, ConnectionTimeout, Elasticsearch
from elasticsearch import ConnectionError as ElasticConnectionError

from ..enums import ElasticSearchAuthType, ProviderType
from ..schemas.provider_schemas import ElasticSearchInputs
from .base import ConnectionBroker


def build_base_url(inputs: ElasticSearchInputs) -> str:
    """Host with scheme and port; https is implied when CA material is supplied."""
    host = inputs.host.rstrip("/")
    if "://" not in host:
        scheme = "https" if inputs.ca else "http"
        host = f"{scheme}://{host}"
    return f"{host}:{inputs.port}"


class ElasticSearchConnectionBroker(ConnectionBroker):
    """Opens an Elasticsearch client authenticated with basic auth or an API key."""

    provider_type = ProviderType.ELASTIC_SEARCH

    def _open(self, inputs: ElasticSearchInputs, stack: ExitStack) -> Elasticsearch:
        kwargs = {
            "request_timeout": self.request_timeout,
            "max_retries": 0,
            "retry_on_timeout": False,
        }
        if inputs.auth.type == ElasticSearchAuthType.USER.value:
            kwargs["basic_auth"] = (inputs.auth.username, inputs.auth.password)
        else:
            kwargs["api_key"] = (inputs.auth.api_key_id, inputs.auth.api_key)

        if inputs.ca:
            kwargs["ssl_context"] = ssl.create_default_context(cadata=inputs.ca)

        client = Elasticsearch(build_base_url(inputs), **kwargs)
        stack.callback(self._close_quietly, client.close, "elasticsearch client")
        return client

    def is_connection_error(self, error: Exception) -> bool:
        return isinstance(
            error, (ElasticConnectionError, ConnectionTimeout, AuthenticationException)
        ) or super().is_connection_error(error)
