"""
MongoDB Atlas provider.

Database users are created through the Atlas Admin API with a
``deleteAfterDate`` matching the lease expiry, so Atlas removes the user on its
own if revocation never happens. Renewal moves that date forward.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from ..brokers.http_broker import MongoAtlasSessionBroker
from ..constants import MONGO_ATLAS_API_URL, MONGO_ATLAS_AUTH_DATABASE, MONGO_ATLAS_SCOPE_TYPES
from ..enums import ProviderType
from ..exceptions import ConnectionFailedError, ErrorCode, ProviderOperationError, ValidationError
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import MongoAtlasInputs
from ..utils.credential_utils import generate_credentials
from .base import ProviderDriver

AUTH_FAILURE_STATUSES = frozenset({401, 403})


def delete_after_date(expire_at: datetime) -> str:
    """ISO 8601 timestamp in UTC; naive datetimes are taken as UTC."""
    if expire_at.tzinfo is None:
        expire_at = expire_at.replace(tzinfo=timezone.utc)
    return expire_at.astimezone(timezone.utc).isoformat(timespec="seconds")


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or ""
    if isinstance(body, dict):
        return body.get("detail") or body.get("errorCode") or response.reason or ""
    return response.reason or ""


class MongoAtlasProvider(ProviderDriver):
    """Creates temporary database users in an Atlas project."""

    provider_type = ProviderType.MONGO_ATLAS

    def default_broker(self) -> MongoAtlasSessionBroker:
        return MongoAtlasSessionBroker()

    def has_native_renewal(self, inputs: MongoAtlasInputs) -> bool:
        return True

    def check_inputs(self, inputs: MongoAtlasInputs) -> None:
        seen_scopes = set()
        for scope in inputs.scopes:
            if scope.type not in MONGO_ATLAS_SCOPE_TYPES:
                raise ValidationError(
                    f"Unknown scope type {scope.type!r}; expected one of "
                    f"{', '.join(sorted(MONGO_ATLAS_SCOPE_TYPES))}",
                    field="inputs.scopes.type",
                    error_code=ErrorCode.CONSTRAINT_VIOLATION,
                )
            if scope.name in seen_scopes:
                raise ValidationError(
                    f"Scope {scope.name!r} is listed more than once",
                    field="inputs.scopes.name",
                    error_code=ErrorCode.DUPLICATE,
                )
            seen_scopes.add(scope.name)

        seen_roles = set()
        for role in inputs.roles:
            key = (role.database_name, role.role_name, role.collection_name)
            if key in seen_roles:
                raise ValidationError(
                    f"Role {role.role_name!r} on {role.database_name!r} is listed more than once",
                    field="inputs.roles",
                    error_code=ErrorCode.DUPLICATE,
                )
            seen_roles.add(key)

    def _users_url(self, inputs: MongoAtlasInputs, username: Optional[str] = None) -> str:
        url = f"{MONGO_ATLAS_API_URL}/groups/{inputs.group_id}/databaseUsers"
        if username is not None:
            url = f"{url}/{MONGO_ATLAS_AUTH_DATABASE}/{username}"
        return url

    def _check(self, response: requests.Response, action: str, **context: Any) -> None:
        if response.ok:
            return
        detail = _error_detail(response)
        if response.status_code in AUTH_FAILURE_STATUSES:
            raise ConnectionFailedError(
                f"Atlas rejected the API key while trying to {action}: {detail}",
                provider_type=self.provider_type.value,
                status=response.status_code,
            )
        raise ProviderOperationError(
            f"Atlas failed to {action}: {detail}",
            status=response.status_code,
            **context,
        )

    def create(self, inputs: MongoAtlasInputs, expire_at: datetime) -> ProviderCreateResult:
        credentials = generate_credentials()
        body: Dict[str, Any] = {
            "username": credentials.username,
            "password": credentials.password,
            "databaseName": MONGO_ATLAS_AUTH_DATABASE,
            "roles": [role.model_dump(by_alias=True, exclude_none=True) for role in inputs.roles],
            "scopes": [scope.model_dump(by_alias=True) for scope in inputs.scopes],
            "deleteAfterDate": delete_after_date(expire_at),
        }

        def provision(session: requests.Session) -> None:
            response = session.post(
                self._users_url(inputs), json=body, timeout=self.broker.timeouts
            )
            self._check(response, "create database user")

        self.broker.with_connection(inputs, provision)

        return ProviderCreateResult(
            entity_id=credentials.username,
            data={"DB_USERNAME": credentials.username, "DB_PASSWORD": credentials.password},
        )

    def validate_connection(self, inputs: MongoAtlasInputs) -> bool:
        def check(session: requests.Session) -> bool:
            response = session.get(
                self._users_url(inputs),
                params={"itemsPerPage": 1},
                timeout=self.broker.timeouts,
            )
            self._check(response, "list database users")
            return True

        return self.broker.with_connection(inputs, check)

    def renew(
        self, inputs: MongoAtlasInputs, entity_id: str, expire_at: datetime
    ) -> ProviderEntityResult:
        def extend(session: requests.Session) -> None:
            response = session.patch(
                self._users_url(inputs, entity_id),
                json={"deleteAfterDate": delete_after_date(expire_at)},
                timeout=self.broker.timeouts,
            )
            self._check(response, "extend database user", entity_id=entity_id)

        self.broker.with_connection(inputs, extend)
        return ProviderEntityResult(entity_id=entity_id)

    def revoke(self, inputs: MongoAtlasInputs, entity_id: str) -> ProviderEntityResult:
        def delete(session: requests.Session) -> None:
            response = session.delete(
                self._users_url(inputs, entity_id), timeout=self.broker.timeouts
            )
            if response.status_code == 404:
                self.logger.info("Database user already deleted", extra={"entity_id": entity_id})
                return
            self._check(response, "delete database user", entity_id=entity_id)

        self.broker.with_connection(inputs, delete)
        return ProviderEntityResult(entity_id=entity_id)
