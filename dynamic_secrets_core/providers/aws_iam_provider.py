"""
AWS IAM provider.

Each lease is a dedicated IAM user holding one access key pair. The user is
placed on the configured path, optionally bounded by a permissions boundary,
added to groups, attached to managed policies and given an inline policy.
"""

import json
from datetime import datetime
from typing import Any, Dict

from ..brokers.aws_broker import IamClientBroker, client_error_code
from ..enums import ProviderType
from ..exceptions import ErrorCode, ProvisioningFailedError, ValidationError
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import AwsIamInputs
from ..utils.credential_utils import generate_username
from .base import ProviderDriver

INLINE_POLICY_NAME = "dynamic-secret-policy"
NO_SUCH_ENTITY = "NoSuchEntity"


def _invalid(field: str, message: str, error_code: ErrorCode = ErrorCode.INVALID_FORMAT):
    return ValidationError(message, field=field, error_code=error_code)


class AwsIamProvider(ProviderDriver):
    """Creates IAM users with programmatic access keys."""

    provider_type = ProviderType.AWS_IAM

    def default_broker(self) -> IamClientBroker:
        return IamClientBroker()

    def check_inputs(self, inputs: AwsIamInputs) -> None:
        if inputs.aws_path and not (
            inputs.aws_path.startswith("/") and inputs.aws_path.endswith("/")
        ):
            raise _invalid("inputs.awsPath", "IAM path must begin and end with '/'")

        boundary = inputs.permission_boundary_policy_arn
        if boundary and not boundary.startswith("arn:"):
            raise _invalid("inputs.permissionBoundaryPolicyArn", "Expected a policy ARN")

        for arn in inputs.policy_arn_list:
            if not arn.startswith("arn:"):
                raise _invalid("inputs.policyArns", f"Expected a policy ARN, got {arn!r}")

        if inputs.policy_document:
            try:
                document = json.loads(inputs.policy_document)
            except json.JSONDecodeError as e:
                raise ValidationError(
                    f"Policy document is not valid JSON: {e.msg}",
                    field="inputs.policyDocument",
                    error_code=ErrorCode.INVALID_FORMAT,
                    cause=e,
                ) from e
            if not isinstance(document, dict):
                raise _invalid("inputs.policyDocument", "Policy document must be a JSON object")

    def create(self, inputs: AwsIamInputs, expire_at: datetime) -> ProviderCreateResult:
        username = generate_username()

        def provision(client: Any) -> Dict[str, Any]:
            request: Dict[str, Any] = {"Path": inputs.aws_path or "/", "UserName": username}
            if inputs.permission_boundary_policy_arn:
                request["PermissionsBoundary"] = inputs.permission_boundary_policy_arn
            client.create_user(**request)

            try:
                for group in inputs.group_names:
                    client.add_user_to_group(GroupName=group, UserName=username)
                for arn in inputs.policy_arn_list:
                    client.attach_user_policy(UserName=username, PolicyArn=arn)
                if inputs.policy_document:
                    client.put_user_policy(
                        UserName=username,
                        PolicyName=INLINE_POLICY_NAME,
                        PolicyDocument=inputs.policy_document,
                    )
                return client.create_access_key(UserName=username)["AccessKey"]
            except Exception as e:
                raise ProvisioningFailedError(
                    f"IAM user {username} was created but could not be fully configured: {e}",
                    entity_id=username,
                    cause=e,
                ) from e

        access_key = self.broker.with_connection(inputs, provision)

        return ProviderCreateResult(
            entity_id=username,
            data={
                "ACCESS_KEY": access_key["AccessKeyId"],
                "SECRET_ACCESS_KEY": access_key["SecretAccessKey"],
                "USERNAME": username,
            },
        )

    def validate_connection(self, inputs: AwsIamInputs) -> bool:
        return self.broker.with_connection(
            inputs, lambda client: "Users" in client.list_users(MaxItems=1)
        )

    def _detach_everything(self, client: Any, username: str) -> None:
        for group in client.list_groups_for_user(UserName=username).get("Groups", []):
            client.remove_user_from_group(GroupName=group["GroupName"], UserName=username)

        for key in client.list_access_keys(UserName=username).get("AccessKeyMetadata", []):
            client.delete_access_key(UserName=username, AccessKeyId=key["AccessKeyId"])

        attached = client.list_attached_user_policies(UserName=username)
        for policy in attached.get("AttachedPolicies", []):
            client.detach_user_policy(UserName=username, PolicyArn=policy["PolicyArn"])

        for name in client.list_user_policies(UserName=username).get("PolicyNames", []):
            client.delete_user_policy(UserName=username, PolicyName=name)

    def revoke(self, inputs: AwsIamInputs, entity_id: str) -> ProviderEntityResult:
        def deprovision(client: Any) -> None:
            try:
                self._detach_everything(client, entity_id)
                client.delete_user(UserName=entity_id)
            except Exception as e:
                if client_error_code(e) != NO_SUCH_ENTITY:
                    raise
                self.logger.info("IAM user already deleted", extra={"entity_id": entity_id})

        self.broker.with_connection(inputs, deprovision)
        return ProviderEntityResult(entity_id=entity_id)
