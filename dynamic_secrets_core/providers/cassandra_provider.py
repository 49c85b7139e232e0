"""
Cassandra provider.
"""

from datetime import datetime
from typing import Any, Dict, List

from ..brokers.cassandra_broker import CassandraConnectionBroker
from ..constants import TemplateVariable
from ..enums import ProviderType
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import CassandraInputs
from ..utils.credential_utils import generate_credentials
from .base import StatementProviderDriver
from .sql_database_provider import is_missing_principal_error


class CassandraProvider(StatementProviderDriver):
    """Creates Cassandra roles with CQL statements."""

    provider_type = ProviderType.CASSANDRA

    def default_broker(self) -> CassandraConnectionBroker:
        return CassandraConnectionBroker()

    def context_variables(self, inputs: CassandraInputs) -> Dict[str, Any]:
        if inputs.keyspace:
            return {TemplateVariable.KEYSPACE.value: inputs.keyspace}
        return {}

    @staticmethod
    def _execute_all(session: Any, statements: List[str]) -> None:
        for statement in statements:
            session.execute(statement)

    def create(self, inputs: CassandraInputs, expire_at: datetime) -> ProviderCreateResult:
        # Unquoted CQL role names are case-insensitive; keep them lower-case
        credentials = generate_credentials()
        statements = self.split(self.render_creation(inputs, credentials, expire_at))

        self.broker.with_connection(inputs, lambda session: self._execute_all(session, statements))

        return ProviderCreateResult(
            entity_id=credentials.username,
            data={"DB_USERNAME": credentials.username, "DB_PASSWORD": credentials.password},
        )

    def validate_connection(self, inputs: CassandraInputs) -> bool:
        return self.broker.with_connection(
            inputs,
            lambda session: session.execute("SELECT release_version FROM system.local").one()
            is not None,
        )

    def revoke(self, inputs: CassandraInputs, entity_id: str) -> ProviderEntityResult:
        statements = self.split(self.render_revocation(inputs, entity_id))

        def run(session: Any) -> None:
            from cassandra import InvalidRequest

            try:
                self._execute_all(session, statements)
            except InvalidRequest as e:
                if not is_missing_principal_error(e, entity_id):
                    raise
                self.logger.info(
                    "Role already removed from cluster", extra={"entity_id": entity_id}
                )

        self.broker.with_connection(inputs, run)
        return ProviderEntityResult(entity_id=entity_id)

    def renew(
        self, inputs: CassandraInputs, entity_id: str, expire_at: datetime
    ) -> ProviderEntityResult:
        if not inputs.renew_statement:
            return ProviderEntityResult(entity_id=entity_id)

        statements = self.split(self.render_renewal(inputs, entity_id, expire_at))
        self.broker.with_connection(inputs, lambda session: self._execute_all(session, statements))
        return ProviderEntityResult(entity_id=entity_id)
