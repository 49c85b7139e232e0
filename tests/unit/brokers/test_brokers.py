"""
Tests for connection brokers: teardown guarantees and failure classification.
"""

import os
from contextlib import ExitStack
from unittest.mock import Mock

import pytest
from requests.auth import HTTPDigestAuth
from sqlalchemy.exc import OperationalError, ProgrammingError

from dynamic_secrets_core.brokers.aws_broker import IamClientBroker, client_error_code
from dynamic_secrets_core.brokers.base import ConnectionBroker, ca_file
from dynamic_secrets_core.brokers.elasticsearch_broker import build_base_url
from dynamic_secrets_core.brokers.http_broker import MongoAtlasSessionBroker
from dynamic_secrets_core.brokers.sql_broker import SqlConnectionBroker
from dynamic_secrets_core.config import ConnectionConfig
from dynamic_secrets_core.enums import ProviderType
from dynamic_secrets_core.exceptions import ConnectionFailedError, ValidationError
from dynamic_secrets_core.schemas.provider_schemas import validate_provider_inputs
from tests.fixtures.factories import INPUT_FACTORIES


class FakeBroker(ConnectionBroker):
    """Broker whose client is a Mock; records teardown."""

    provider_type = ProviderType.REDIS

    def __init__(self, open_error=None, **kwargs):
        super().__init__(**kwargs)
        self.open_error = open_error
        self.client = Mock(name="client")
        self.closed = False

    def _open(self, inputs, stack: ExitStack):
        if self.open_error is not None:
            raise self.open_error
        stack.callback(self._close)
        return self.client

    def _close(self):
        self.closed = True


class TestConnectionBroker:
    def test_returns_function_result_and_closes(self):
        broker = FakeBroker()
        broker.client.ping.return_value = "PONG"

        result = broker.with_connection(object(), lambda client: client.ping())

        assert result == "PONG"
        assert broker.closed is True

    def test_closes_when_function_raises(self):
        broker = FakeBroker()

        with pytest.raises(KeyError):
            broker.with_connection(object(), lambda client: {}["missing"])

        assert broker.closed is True

    def test_open_failure_is_connection_failed(self):
        broker = FakeBroker(open_error=OSError("connection refused"))

        with pytest.raises(ConnectionFailedError) as exc_info:
            broker.with_connection(object(), lambda client: None)

        assert exc_info.value.retryable is True
        assert exc_info.value.context["stage"] == "connect to"
        assert exc_info.value.context["provider_type"] == "redis"

    def test_connection_error_during_use_is_connection_failed(self):
        broker = FakeBroker()

        def fail(client):
            raise TimeoutError("read timed out")

        with pytest.raises(ConnectionFailedError) as exc_info:
            broker.with_connection(object(), fail)

        assert exc_info.value.context["stage"] == "communicate with"
        assert broker.closed is True

    def test_framework_errors_pass_through(self):
        broker = FakeBroker()

        def fail(client):
            raise ValidationError("bad statement", field="inputs.creationStatement")

        with pytest.raises(ValidationError):
            broker.with_connection(object(), fail)

    def test_timeouts_come_from_connection_config(self):
        broker = FakeBroker(
            connection_config=ConnectionConfig(
                connect_timeout=3,
                request_timeout=7,
                provider_timeouts={ProviderType.REDIS: 1},
            )
        )

        assert broker.connect_timeout == 1
        assert broker.request_timeout == 7


class TestCaFile:
    def test_none_without_ca(self):
        with ca_file(None) as path:
            assert path is None

    def test_written_and_removed(self):
        with ca_file("-----BEGIN CERTIFICATE-----\nabc\n") as path:
            with open(path) as handle:
                assert handle.read().startswith("-----BEGIN CERTIFICATE-----")
        assert not os.path.exists(path)


class TestSqlConnectionBroker:
    def _inputs(self, **overrides):
        return validate_provider_inputs(
            ProviderType.SQL_DATABASE, INPUT_FACTORIES[ProviderType.SQL_DATABASE](**overrides)
        )

    def test_postgres_url(self):
        url = SqlConnectionBroker().build_url(self._inputs())

        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "db.internal.example.com"
        assert url.database == "app"
        assert url.password == "admin-password"

    def test_oracle_uses_service_name(self):
        url = SqlConnectionBroker().build_url(self._inputs(client="oracle", port=1521))

        assert url.drivername == "oracle+oracledb"
        assert url.database is None
        assert url.query["service_name"] == "app"

    def test_postgres_ca_verification(self):
        broker = SqlConnectionBroker(connection_config=ConnectionConfig(connect_timeout=4))

        args = broker.connect_args(self._inputs(), "/tmp/ca.pem")

        assert args["sslmode"] == "verify-ca"
        assert args["sslrootcert"] == "/tmp/ca.pem"
        assert args["connect_timeout"] == 4

    def test_mysql_ssl(self):
        args = SqlConnectionBroker().connect_args(self._inputs(client="mysql"), "/tmp/ca.pem")

        assert args["ssl"] == {"ca": "/tmp/ca.pem"}

    def test_error_classification(self):
        broker = SqlConnectionBroker()

        assert broker.is_connection_error(OperationalError("SELECT 1", {}, Exception("gone")))
        assert not broker.is_connection_error(
            ProgrammingError("DROP ROLE x", {}, Exception("syntax"))
        )


class TestElasticSearchBaseUrl:
    def _inputs(self, **overrides):
        return validate_provider_inputs(
            ProviderType.ELASTIC_SEARCH, INPUT_FACTORIES[ProviderType.ELASTIC_SEARCH](**overrides)
        )

    def test_http_without_ca(self):
        assert build_base_url(self._inputs()) == "http://es.internal.example.com:9200"

    def test_https_with_ca(self):
        assert build_base_url(self._inputs(ca="PEM")).startswith("https://")

    def test_explicit_scheme_kept(self):
        url = build_base_url(self._inputs(host="https://es.example.com"))

        assert url == "https://es.example.com:9200"


class TestMongoAtlasSessionBroker:
    def test_session_uses_digest_auth(self):
        inputs = validate_provider_inputs(
            ProviderType.MONGO_ATLAS, INPUT_FACTORIES[ProviderType.MONGO_ATLAS]()
        )
        broker = MongoAtlasSessionBroker(
            connection_config=ConnectionConfig(connect_timeout=2, request_timeout=9)
        )

        with broker.connection(inputs) as session:
            assert isinstance(session.auth, HTTPDigestAuth)
            assert session.auth.username == "public-key"
            assert session.headers["Accept"].startswith("application/vnd.atlas")

        assert broker.timeouts == (2, 9)


class TestAwsErrors:
    def test_client_error_code(self):
        from botocore.exceptions import ClientError

        error = ClientError({"Error": {"Code": "NoSuchEntity", "Message": "x"}}, "DeleteUser")

        assert client_error_code(error) == "NoSuchEntity"
        assert client_error_code(ValueError("x")) == ""

    def test_auth_failures_are_connection_errors(self):
        from botocore.exceptions import ClientError

        broker = IamClientBroker()
        error = ClientError({"Error": {"Code": "InvalidClientTokenId"}}, "ListUsers")

        assert broker.is_connection_error(error)
        assert not broker.is_connection_error(
            ClientError({"Error": {"Code": "EntityAlreadyExists"}}, "CreateUser")
        )
