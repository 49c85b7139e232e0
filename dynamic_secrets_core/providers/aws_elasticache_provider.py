"""
AWS ElastiCache provider.

The creation statement renders to the JSON body of an ElastiCache ``CreateUser``
request, for example::

    {"UserId": "{{username}}", "UserName": "{{username}}", "Engine": "redis",
     "Passwords": ["{{password}}"], "AccessString": "on ~* +@all"}

The new user is then added to the user group attached to the cluster's
replication group. The revocation statement renders to ``{"UserId": "..."}``.
"""

import json
from datetime import datetime
from typing import Any, Dict

from ..brokers.aws_broker import ElastiCacheClientBroker, client_error_code
from ..enums import ProviderType
from ..exceptions import (
    ErrorCode,
    ProviderOperationError,
    ProvisioningFailedError,
    ValidationError,
)
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import AwsElastiCacheInputs
from ..utils.credential_utils import CredentialMaterial, generate_password, generate_username
from .base import StatementProviderDriver

USER_NOT_FOUND_CODES = frozenset({"UserNotFound", "UserNotFoundFault"})

# ElastiCache user ids: 1-40 chars, letter first, lower-case alphanumerics and hyphens
USERNAME_LENGTH = 32


def parse_json_statement(rendered: str, field: str) -> Dict[str, Any]:
    """Parse a rendered JSON statement, requiring a JSON object."""
    try:
        document = json.loads(rendered)
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Statement {field} is not valid JSON: {e.msg}",
            field=field,
            error_code=ErrorCode.INVALID_FORMAT,
            cause=e,
        ) from e
    if not isinstance(document, dict):
        raise ValidationError(
            f"Statement {field} must be a JSON object",
            field=field,
            error_code=ErrorCode.INVALID_FORMAT,
        )
    return document


class AwsElastiCacheProvider(StatementProviderDriver):
    """Creates ElastiCache RBAC users through the ElastiCache API."""

    provider_type = ProviderType.AWS_ELASTICACHE

    def default_broker(self) -> ElastiCacheClientBroker:
        return ElastiCacheClientBroker()

    def check_inputs(self, inputs: AwsElastiCacheInputs) -> None:
        super().check_inputs(inputs)
        placeholder = CredentialMaterial(username="u", password="p")
        parse_json_statement(
            self.render_creation(inputs, placeholder, datetime.now()), self.creation_field
        )
        parse_json_statement(self.render_revocation(inputs, "u"), self.revocation_field)

    def _user_group_id(self, client: Any, cluster_name: str) -> str:
        response = client.describe_replication_groups(ReplicationGroupId=cluster_name)
        groups = response.get("ReplicationGroups", [])
        user_group_ids = groups[0].get("UserGroupIds", []) if groups else []
        if not user_group_ids:
            raise ProviderOperationError(
                f"Cluster {cluster_name} has no user group attached",
                cluster_name=cluster_name,
            )
        return user_group_ids[0]

    def create(self, inputs: AwsElastiCacheInputs, expire_at: datetime) -> ProviderCreateResult:
        credentials = CredentialMaterial(
            username=generate_username(USERNAME_LENGTH), password=generate_password()
        )
        request = parse_json_statement(
            self.render_creation(inputs, credentials, expire_at), self.creation_field
        )
        request.setdefault("Engine", "redis")
        user_id = request.setdefault("UserId", credentials.username)
        request.setdefault("UserName", user_id)

        def provision(client: Any) -> None:
            group_id = self._user_group_id(client, inputs.cluster_name)
            client.create_user(**request)
            try:
                client.modify_user_group(UserGroupId=group_id, UserIdsToAdd=[user_id])
            except Exception as e:
                raise ProvisioningFailedError(
                    f"User {user_id} was created but could not be added to user group {group_id}",
                    entity_id=user_id,
                    cause=e,
                ) from e

        self.broker.with_connection(inputs, provision)

        return ProviderCreateResult(
            entity_id=user_id,
            data={"DB_USERNAME": request["UserName"], "DB_PASSWORD": credentials.password},
        )

    def validate_connection(self, inputs: AwsElastiCacheInputs) -> bool:
        return self.broker.with_connection(
            inputs,
            lambda client: bool(
                client.describe_replication_groups(ReplicationGroupId=inputs.cluster_name).get(
                    "ReplicationGroups"
                )
            ),
        )

    def revoke(self, inputs: AwsElastiCacheInputs, entity_id: str) -> ProviderEntityResult:
        request = parse_json_statement(
            self.render_revocation(inputs, entity_id), self.revocation_field
        )
        user_id = request.get("UserId", entity_id)

        def deprovision(client: Any) -> None:
            group_id = self._user_group_id(client, inputs.cluster_name)
            try:
                client.modify_user_group(UserGroupId=group_id, UserIdsToRemove=[user_id])
            except Exception as e:
                # Removing a user that is not a member is rejected; deletion below decides
                if not client_error_code(e):
                    raise
                self.logger.info(
                    "User not removed from user group",
                    extra={"entity_id": user_id, "error_code": client_error_code(e)},
                )

            try:
                client.delete_user(UserId=user_id)
            except Exception as e:
                if client_error_code(e) not in USER_NOT_FOUND_CODES:
                    raise
                self.logger.info("User already deleted", extra={"entity_id": user_id})

        self.broker.with_connection(inputs, deprovision)
        return ProviderEntityResult(entity_id=entity_id)
