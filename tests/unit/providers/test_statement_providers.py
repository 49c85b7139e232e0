"""
Tests for the statement-driven providers: SQL database, Cassandra and Redis.
"""

import pytest
from sqlalchemy.exc import ProgrammingError

from dynamic_secrets_core.enums import ProviderType
from dynamic_secrets_core.exceptions import ErrorCode, TemplateError, ValidationError
from dynamic_secrets_core.providers.cassandra_provider import CassandraProvider
from dynamic_secrets_core.providers.redis_provider import RedisProvider
from dynamic_secrets_core.providers.sql_database_provider import (
    SqlDatabaseProvider,
    is_missing_principal_error,
)
from tests.fixtures.factories import POSTGRES_RENEW
from tests.fixtures.brokers import broker_for, inputs_for


def executed(client):
    return [call.args[0] for call in client.exec_driver_sql.call_args_list]


class TestSqlDatabaseProvider:
    def test_create_runs_rendered_statements(self, client, expire_at):
        provider = SqlDatabaseProvider(broker=broker_for(client))
        inputs = inputs_for(ProviderType.SQL_DATABASE)

        result = provider.create(inputs, expire_at)

        username = result.entity_id
        password = result.data["DB_PASSWORD"]
        assert result.data["DB_USERNAME"] == username
        statements = executed(client)
        assert len(statements) == 2
        assert statements[0].startswith(f'CREATE ROLE "{username}" WITH LOGIN PASSWORD \'{password}\'')
        assert expire_at.strftime("%Y-%m-%d %H:%M:%S") in statements[0]
        assert all("{{" not in statement for statement in statements)
        client.begin.assert_called_once()

    def test_oracle_usernames_are_upper_case(self, client, expire_at):
        provider = SqlDatabaseProvider(broker=broker_for(client))
        inputs = inputs_for(
            ProviderType.SQL_DATABASE,
            client="oracle",
            creationStatement='CREATE USER {{username}} IDENTIFIED BY "{{password}}"',
            revocationStatement="DROP USER {{username}}",
        )

        result = provider.create(inputs, expire_at)

        assert len(result.entity_id) == 30
        assert result.entity_id == result.entity_id.upper()

    def test_database_variable_available(self, client, expire_at):
        provider = SqlDatabaseProvider(broker=broker_for(client))
        inputs = inputs_for(
            ProviderType.SQL_DATABASE,
            creationStatement="CREATE ROLE {{username}}; GRANT CONNECT ON DATABASE {{database}} TO {{username}}",
        )

        result = provider.create(inputs, expire_at)

        assert executed(client)[1] == f"GRANT CONNECT ON DATABASE app TO {result.entity_id}"

    def test_revoke_tolerates_missing_role(self, client):
        client.exec_driver_sql.side_effect = ProgrammingError(
            "DROP ROLE", {}, Exception('role "abc" does not exist')
        )
        provider = SqlDatabaseProvider(broker=broker_for(client))

        result = provider.revoke(inputs_for(ProviderType.SQL_DATABASE), "abc")

        assert result.entity_id == "abc"

    def test_revoke_propagates_other_errors(self, client):
        client.exec_driver_sql.side_effect = ProgrammingError(
            "DROP ROLE", {}, Exception("permission denied to drop role")
        )
        provider = SqlDatabaseProvider(broker=broker_for(client))

        with pytest.raises(ProgrammingError) as exc_info:
            provider.revoke(inputs_for(ProviderType.SQL_DATABASE), "abc")

        assert exc_info.value.statement is None

    def test_renew_without_statement_is_logical(self, client, expire_at):
        broker = broker_for(client)
        provider = SqlDatabaseProvider(broker=broker)
        inputs = inputs_for(ProviderType.SQL_DATABASE)

        provider.renew(inputs, "abc", expire_at)

        assert provider.has_native_renewal(inputs) is False
        broker.with_connection.assert_not_called()

    def test_renew_with_statement(self, client, expire_at):
        provider = SqlDatabaseProvider(broker=broker_for(client))
        inputs = inputs_for(ProviderType.SQL_DATABASE, renewStatement=POSTGRES_RENEW)

        provider.renew(inputs, "abc", expire_at)

        assert provider.has_native_renewal(inputs) is True
        assert executed(client) == [
            f"ALTER ROLE \"abc\" VALID UNTIL '{expire_at.strftime('%Y-%m-%d %H:%M:%S')}'"
        ]

    def test_validate_connection(self, client):
        client.exec_driver_sql.return_value.scalar.return_value = 1
        provider = SqlDatabaseProvider(broker=broker_for(client))

        assert provider.validate_connection(inputs_for(ProviderType.SQL_DATABASE)) is True
        assert executed(client) == ["SELECT 1"]

    def test_undefined_variable_rejected_at_validation(self):
        provider = SqlDatabaseProvider(broker=broker_for(None))
        raw = inputs_for(ProviderType.SQL_DATABASE).model_dump(by_alias=True)
        raw["creationStatement"] = "CREATE ROLE {{username}} IN GROUP {{group}}"

        with pytest.raises(TemplateError) as exc_info:
            provider.validate_provider_inputs(raw)

        assert exc_info.value.undefined == ["group"]

    def test_keyspace_not_available_to_sql(self):
        provider = SqlDatabaseProvider(broker=broker_for(None))
        raw = inputs_for(ProviderType.SQL_DATABASE).model_dump(by_alias=True)
        raw["revocationStatement"] = "DROP ROLE {{username}} IN {{keyspace}}"

        with pytest.raises(TemplateError):
            provider.validate_provider_inputs(raw)

    @pytest.mark.parametrize(
        "message",
        [
            'role "x" does not exist',
            "ORA-01918: user 'X' does not exist",
            "(1396, \"Operation DROP USER failed for 'x'@'%'\")",
            "Cannot drop the login 'x', because it does not exist or you do not have permission.",
        ],
    )
    def test_missing_principal_messages(self, message):
        assert is_missing_principal_error(Exception(message), "x")

    @pytest.mark.parametrize(
        "message",
        [
            'schema "reporting" does not exist',
            'relation "audit_log" does not exist',
            'role "someone_else" does not exist',
            "permission denied to drop role",
        ],
    )
    def test_other_errors_are_not_missing_principal(self, message):
        assert not is_missing_principal_error(Exception(message), "u_abc123")

    def test_revoke_fails_when_another_object_is_missing(self, client):
        client.exec_driver_sql.side_effect = ProgrammingError(
            "REVOKE", {}, Exception('schema "reporting" does not exist')
        )
        provider = SqlDatabaseProvider(broker=broker_for(client))

        with pytest.raises(ProgrammingError):
            provider.revoke(inputs_for(ProviderType.SQL_DATABASE), "u_abc123")


class TestCassandraProvider:
    def test_create_executes_cql(self, client, expire_at):
        provider = CassandraProvider(broker=broker_for(client))

        result = provider.create(inputs_for(ProviderType.CASSANDRA), expire_at)

        statements = [call.args[0] for call in client.execute.call_args_list]
        assert statements[0].startswith(f'CREATE ROLE "{result.entity_id}"')
        assert statements[1] == f'GRANT SELECT ON KEYSPACE app TO "{result.entity_id}"'

    def test_keyspace_variable_requires_keyspace(self):
        provider = CassandraProvider(broker=broker_for(None))
        raw = inputs_for(ProviderType.CASSANDRA).model_dump(by_alias=True, exclude_none=True)
        del raw["keyspace"]

        with pytest.raises(TemplateError) as exc_info:
            provider.validate_provider_inputs(raw)

        assert exc_info.value.undefined == ["keyspace"]

    def test_revoke_tolerates_missing_role(self, client):
        cassandra = pytest.importorskip("cassandra")
        client.execute.side_effect = cassandra.InvalidRequest("Role abc doesn't exist")
        provider = CassandraProvider(broker=broker_for(client))

        assert provider.revoke(inputs_for(ProviderType.CASSANDRA), "abc").entity_id == "abc"

    def test_revoke_propagates_unrelated_missing_object(self, client):
        cassandra = pytest.importorskip("cassandra")
        client.execute.side_effect = cassandra.InvalidRequest("Keyspace reporting doesn't exist")
        provider = CassandraProvider(broker=broker_for(client))

        with pytest.raises(cassandra.InvalidRequest):
            provider.revoke(inputs_for(ProviderType.CASSANDRA), "abc")

    def test_validate_connection(self, client):
        provider = CassandraProvider(broker=broker_for(client))

        assert provider.validate_connection(inputs_for(ProviderType.CASSANDRA)) is True
        client.execute.assert_called_once_with("SELECT release_version FROM system.local")


class TestRedisProvider:
    def test_create_sends_tokenised_commands(self, client, expire_at):
        provider = RedisProvider(broker=broker_for(client))

        result = provider.create(inputs_for(ProviderType.REDIS), expire_at)

        client.execute_command.assert_called_once_with(
            "ACL",
            "SETUSER",
            result.entity_id,
            "on",
            f">{result.data['DB_PASSWORD']}",
            "~*",
            "+@read",
        )

    def test_quoted_arguments(self, client, expire_at):
        provider = RedisProvider(broker=broker_for(client))
        inputs = inputs_for(
            ProviderType.REDIS,
            creationStatement="ACL SETUSER {{username}} on >{{password}} '~app:*'; ACL SAVE",
        )

        provider.create(inputs, expire_at)

        first, second = client.execute_command.call_args_list
        assert first.args[-1] == "~app:*"
        assert second.args == ("ACL", "SAVE")

    @pytest.mark.parametrize(
        "field,statement",
        [
            ("creationStatement", "ACL SETUSER {{username}} on >{{password}} 'unbalanced"),
            ("revocationStatement", 'ACL DELUSER "{{username}}'),
            ("renewStatement", "ACL SETUSER {{username}} '~app:*"),
        ],
    )
    def test_unbalanced_quote_rejected_at_validation(self, field, statement):
        provider = RedisProvider(broker=broker_for(None))
        raw = inputs_for(ProviderType.REDIS).model_dump(by_alias=True)
        raw[field] = statement

        with pytest.raises(ValidationError) as exc_info:
            provider.validate_provider_inputs(raw)

        assert exc_info.value.field == field
        assert exc_info.value.error_code == ErrorCode.INVALID_FORMAT

    def test_revoke(self, client):
        provider = RedisProvider(broker=broker_for(client))

        provider.revoke(inputs_for(ProviderType.REDIS), "abc")

        client.execute_command.assert_called_once_with("ACL", "DELUSER", "abc")

    def test_validate_connection(self, client):
        client.ping.return_value = True
        provider = RedisProvider(broker=broker_for(client))

        assert provider.validate_connection(inputs_for(ProviderType.REDIS)) is True
