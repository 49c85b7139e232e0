"""
SQL connection broker built on SQLAlchemy.

Each operation gets its own engine with NullPool, so no connection outlives the
operation that opened it.
"""

from contextlib import ExitStack
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import NullPool

from ..enums import ProviderType, SqlClient
from ..schemas.provider_schemas import SqlDatabaseInputs
from .base import ConnectionBroker, ca_file

DRIVER_NAMES = {
    SqlClient.POSTGRES: "postgresql+psycopg2",
    SqlClient.MYSQL: "mysql+pymysql",
    SqlClient.ORACLE: "oracle+oracledb",
    SqlClient.MSSQL: "mssql+pymssql",
}

VALIDATION_QUERIES = {
    SqlClient.POSTGRES: "SELECT 1",
    SqlClient.MYSQL: "SELECT 1",
    SqlClient.ORACLE: "SELECT 1 FROM DUAL",
    SqlClient.MSSQL: "SELECT 1",
}


class SqlConnectionBroker(ConnectionBroker):
    """Opens a single SQLAlchemy connection to the target database."""

    provider_type = ProviderType.SQL_DATABASE

    def build_url(self, inputs: SqlDatabaseInputs) -> URL:
        if inputs.client == SqlClient.ORACLE:
            # Oracle addresses the database by service name
            return URL.create(
                DRIVER_NAMES[inputs.client],
                username=inputs.username,
                password=inputs.password,
                host=inputs.host,
                port=inputs.port,
                query={"service_name": inputs.database},
            )
        return URL.create(
            DRIVER_NAMES[inputs.client],
            username=inputs.username,
            password=inputs.password,
            host=inputs.host,
            port=inputs.port,
            database=inputs.database,
        )

    def connect_args(self, inputs: SqlDatabaseInputs, ca_path: Optional[str]) -> Dict[str, Any]:
        """Driver keyword arguments carrying timeouts and TLS material."""
        connect_timeout = self.connect_timeout
        request_timeout = self.request_timeout

        if inputs.client == SqlClient.POSTGRES:
            args: Dict[str, Any] = {
                "connect_timeout": max(1, int(connect_timeout)),
                "options": f"-c statement_timeout={int(request_timeout * 1000)}",
            }
            if ca_path:
                args.update({"sslmode": "verify-ca", "sslrootcert": ca_path})
            return args

        if inputs.client == SqlClient.MYSQL:
            args = {
                "connect_timeout": connect_timeout,
                "read_timeout": request_timeout,
                "write_timeout": request_timeout,
            }
            if ca_path:
                args["ssl"] = {"ca": ca_path}
            return args

        if inputs.client == SqlClient.ORACLE:
            if ca_path:
                self.logger.warning(
                    "CA material is not applied to oracle connections; configure a wallet instead",
                    extra={"host": inputs.host},
                )
            return {"tcp_connect_timeout": connect_timeout}

        if ca_path:
            self.logger.warning(
                "CA material is not applied to mssql connections; the server certificate is trusted by the driver",
                extra={"host": inputs.host},
            )
        return {"login_timeout": max(1, int(connect_timeout)), "timeout": int(request_timeout)}

    def _open(self, inputs: SqlDatabaseInputs, stack: ExitStack) -> Connection:
        ca_path = stack.enter_context(ca_file(inputs.ca))
        engine = create_engine(
            self.build_url(inputs),
            poolclass=NullPool,
            connect_args=self.connect_args(inputs, ca_path),
        )
        stack.callback(self._close_quietly, engine.dispose, "sql engine")

        connection = engine.connect()
        stack.callback(self._close_quietly, connection.close, "sql connection")
        return connection

    def is_connection_error(self, error: Exception) -> bool:
        return isinstance(
            error, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)
        ) or super().is_connection_error(error)
