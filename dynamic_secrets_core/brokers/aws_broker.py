"""
AWS API client broker built on boto3.

Clients are created per operation from the admin credentials in the provider
inputs, with bounded timeouts and botocore retries disabled.
"""

from contextlib import ExitStack
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from ..enums import ProviderType
from .base import ConnectionBroker

# Error codes meaning the admin credentials were rejected
AUTH_ERROR_CODES = frozenset(
    {
        "InvalidClientTokenId",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
        "AuthFailure",
        "ExpiredToken",
        "InvalidAccessKeyId",
    }
)


def client_error_code(error: Exception) -> str:
    """The AWS error code carried by a botocore ClientError, or empty string."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


class AwsClientBroker(ConnectionBroker):
    """Opens a boto3 client for one AWS service."""

    service_name: str

    def _credentials(self, inputs: Any) -> dict:
        raise NotImplementedError

    def _open(self, inputs: Any, stack: ExitStack) -> Any:
        session = boto3.Session(region_name=inputs.region, **self._credentials(inputs))
        client = session.client(
            self.service_name,
            config=Config(
                connect_timeout=self.connect_timeout,
                read_timeout=self.request_timeout,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )
        stack.callback(self._close_quietly, client.close, f"{self.service_name} client")
        return client

    def is_connection_error(self, error: Exception) -> bool:
        if client_error_code(error) in AUTH_ERROR_CODES:
            return True
        return isinstance(
            error,
            (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError, NoCredentialsError),
        ) or super().is_connection_error(error)


class IamClientBroker(AwsClientBroker):
    provider_type = ProviderType.AWS_IAM
    service_name = "iam"

    def _credentials(self, inputs: Any) -> dict:
        return {
            "aws_access_key_id": inputs.access_key,
            "aws_secret_access_key": inputs.secret_access_key,
        }


class ElastiCacheClientBroker(AwsClientBroker):
    provider_type = ProviderType.AWS_ELASTICACHE
    service_name = "elasticache"

    def _credentials(self, inputs: Any) -> dict:
        return {
            "aws_access_key_id": inputs.access_key_id,
            "aws_secret_access_key": inputs.secret_access_key,
        }
