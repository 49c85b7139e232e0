"""
Redis provider.

Each statement is one Redis command line, for example
``ACL SETUSER {{username}} on >{{password}} ~* +@all``. Command lines are
separated by ``;`` and tokenised with shell quoting rules.
"""

import shlex
from datetime import datetime
from typing import Any, List

from ..brokers.redis_broker import RedisConnectionBroker
from ..enums import ProviderType
from ..exceptions import ErrorCode, ValidationError
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import RedisInputs
from ..utils.credential_utils import CredentialMaterial, generate_credentials
from .base import StatementProviderDriver


class RedisProvider(StatementProviderDriver):
    """Creates Redis ACL users."""

    provider_type = ProviderType.REDIS

    def default_broker(self) -> RedisConnectionBroker:
        return RedisConnectionBroker()

    @staticmethod
    def _execute_all(client: Any, commands: List[List[str]]) -> None:
        for command in commands:
            client.execute_command(*command)

    def _commands(self, rendered: str, field: str) -> List[List[str]]:
        try:
            return [shlex.split(statement) for statement in self.split(rendered)]
        except ValueError as e:
            raise ValidationError(
                f"Statement {field} cannot be tokenised: {e}",
                field=field,
                error_code=ErrorCode.INVALID_FORMAT,
                cause=e,
            ) from e

    def check_inputs(self, inputs: RedisInputs) -> None:
        super().check_inputs(inputs)
        placeholder = CredentialMaterial(username="u", password="p")
        now = datetime.now()
        self._commands(self.render_creation(inputs, placeholder, now), self.creation_field)
        self._commands(self.render_revocation(inputs, "u"), self.revocation_field)
        if inputs.renew_statement:
            self._commands(self.render_renewal(inputs, "u", now), self.renew_field)

    def create(self, inputs: RedisInputs, expire_at: datetime) -> ProviderCreateResult:
        credentials = generate_credentials()
        commands = self._commands(
            self.render_creation(inputs, credentials, expire_at), self.creation_field
        )

        self.broker.with_connection(inputs, lambda client: self._execute_all(client, commands))

        return ProviderCreateResult(
            entity_id=credentials.username,
            data={"DB_USERNAME": credentials.username, "DB_PASSWORD": credentials.password},
        )

    def validate_connection(self, inputs: RedisInputs) -> bool:
        return bool(self.broker.with_connection(inputs, lambda client: client.ping()))

    def revoke(self, inputs: RedisInputs, entity_id: str) -> ProviderEntityResult:
        # ACL DELUSER on an unknown user replies 0 rather than failing
        commands = self._commands(
            self.render_revocation(inputs, entity_id), self.revocation_field
        )
        self.broker.with_connection(inputs, lambda client: self._execute_all(client, commands))
        return ProviderEntityResult(entity_id=entity_id)

    def renew(self, inputs: RedisInputs, entity_id: str, expire_at: datetime) -> ProviderEntityResult:
        if not inputs.renew_statement:
            return ProviderEntityResult(entity_id=entity_id)

        commands = self._commands(
            self.render_renewal(inputs, entity_id, expire_at), self.renew_field
        )
        self.broker.with_connection(inputs, lambda client: self._execute_all(client, commands))
        return ProviderEntityResult(entity_id=entity_id)
