"""
SQL database provider (postgres, mysql, oracle, mssql).
"""

import re
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError

from ..brokers.sql_broker import VALIDATION_QUERIES, SqlConnectionBroker
from ..constants import TemplateVariable
from ..enums import ProviderType, SqlClient
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import SqlDatabaseInputs
from ..utils.credential_utils import CredentialMaterial, generate_password, generate_username
from .base import StatementProviderDriver

# Oracle identifiers are capped at 30 characters on older releases
USERNAME_LENGTHS = {
    SqlClient.POSTGRES: 32,
    SqlClient.MYSQL: 32,
    SqlClient.ORACLE: 30,
    SqlClient.MSSQL: 32,
}

# Messages databases use when the principal being dropped does not exist
MISSING_PRINCIPAL_PATTERNS = re.compile(
    r"does not exist|doesn't exist|ORA-01918|Operation DROP USER failed|\b1396\b|\b15151\b",
    re.IGNORECASE,
)


def is_missing_principal_error(error: Exception, entity_id: str) -> bool:
    """True when the error reports that `entity_id` itself is gone, not some other object."""
    message = str(error)
    # Oracle reports identifiers upper-cased
    return bool(MISSING_PRINCIPAL_PATTERNS.search(message)) and entity_id.lower() in message.lower()


class SqlDatabaseProvider(StatementProviderDriver):
    """Creates database roles/logins by running administrator statements in one transaction."""

    provider_type = ProviderType.SQL_DATABASE

    def default_broker(self) -> SqlConnectionBroker:
        return SqlConnectionBroker()

    def context_variables(self, inputs: SqlDatabaseInputs) -> Dict[str, Any]:
        return {TemplateVariable.DATABASE.value: inputs.database}

    def generate_credentials(self, inputs: SqlDatabaseInputs) -> CredentialMaterial:
        return CredentialMaterial(
            username=generate_username(
                USERNAME_LENGTHS[inputs.client], uppercase=inputs.client == SqlClient.ORACLE
            ),
            password=generate_password(),
        )

    @staticmethod
    def _execute_all(connection: Connection, statements: List[str]) -> None:
        try:
            with connection.begin():
                for statement in statements:
                    connection.exec_driver_sql(statement)
        except DBAPIError as e:
            # Rendered statements embed the generated password; keep them out of error text
            e.statement = None
            raise

    def create(self, inputs: SqlDatabaseInputs, expire_at: datetime) -> ProviderCreateResult:
        credentials = self.generate_credentials(inputs)
        statements = self.split(self.render_creation(inputs, credentials, expire_at))

        self.broker.with_connection(inputs, lambda conn: self._execute_all(conn, statements))

        return ProviderCreateResult(
            entity_id=credentials.username,
            data={"DB_USERNAME": credentials.username, "DB_PASSWORD": credentials.password},
        )

    def validate_connection(self, inputs: SqlDatabaseInputs) -> bool:
        query = VALIDATION_QUERIES[inputs.client]
        return self.broker.with_connection(
            inputs, lambda conn: conn.exec_driver_sql(query).scalar() is not None
        )

    def revoke(self, inputs: SqlDatabaseInputs, entity_id: str) -> ProviderEntityResult:
        statements = self.split(self.render_revocation(inputs, entity_id))

        def run(connection: Connection) -> None:
            try:
                self._execute_all(connection, statements)
            except DBAPIError as e:
                if not is_missing_principal_error(e, entity_id):
                    raise
                self.logger.info(
                    "Principal already removed from database",
                    extra={"entity_id": entity_id, "client": inputs.client.value},
                )

        self.broker.with_connection(inputs, run)
        return ProviderEntityResult(entity_id=entity_id)

    def renew(
        self, inputs: SqlDatabaseInputs, entity_id: str, expire_at: datetime
    ) -> ProviderEntityResult:
        if not inputs.renew_statement:
            return ProviderEntityResult(entity_id=entity_id)

        statements = self.split(self.render_renewal(inputs, entity_id, expire_at))
        self.broker.with_connection(inputs, lambda conn: self._execute_all(conn, statements))
        return ProviderEntityResult(entity_id=entity_id)
