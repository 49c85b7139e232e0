"""
Cassandra connection broker built on the DataStax cassandra-driver.

The driver is imported when a session is opened: loading cassandra.cluster
selects an event loop reactor, which is only worth doing for Cassandra work.
"""

import ssl
from contextlib import ExitStack
from typing import Any

from ..enums import ProviderType
from ..schemas.provider_schemas import CassandraInputs
from .base import ConnectionBroker


class CassandraConnectionBroker(ConnectionBroker):
    """Opens a cluster session pinned to the configured local data center."""

    provider_type = ProviderType.CASSANDRA

    def _open(self, inputs: CassandraInputs, stack: ExitStack) -> Any:
        from cassandra.auth import PlainTextAuthProvider
        from cassandra.cluster import Cluster
        from cassandra.policies import DCAwareRoundRobinPolicy

        ssl_context = None
        if inputs.ca:
            ssl_context = ssl.create_default_context(cadata=inputs.ca)
            # Contact points are frequently IPs that are not in the certificate
            ssl_context.check_hostname = False

        cluster = Cluster(
            contact_points=[inputs.host],
            port=inputs.port,
            auth_provider=PlainTextAuthProvider(
                username=inputs.username, password=inputs.password
            ),
            load_balancing_policy=DCAwareRoundRobinPolicy(local_dc=inputs.local_data_center),
            ssl_context=ssl_context,
            connect_timeout=self.connect_timeout,
            control_connection_timeout=self.connect_timeout,
        )
        stack.callback(self._close_quietly, cluster.shutdown, "cassandra cluster")

        session = cluster.connect(inputs.keyspace) if inputs.keyspace else cluster.connect()
        session.default_timeout = self.request_timeout
        return session

    def is_connection_error(self, error: Exception) -> bool:
        from cassandra import AuthenticationFailed, OperationTimedOut
        from cassandra.cluster import NoHostAvailable

        return isinstance(
            error, (NoHostAvailable, OperationTimedOut, AuthenticationFailed)
        ) or super().is_connection_error(error)
