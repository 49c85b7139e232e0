"""
Provider driver interface.

A driver implements the lifecycle contract for one family of external systems:
create, renew and revoke a principal, check connectivity, and validate inputs
beyond what the structural schema can express.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Set, Union

from ..brokers.base import ConnectionBroker
from ..constants import TemplateVariable
from ..enums import ProviderType
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import BaseInputSchema, validate_provider_inputs
from ..utils.credential_utils import CredentialMaterial, format_expiration
from ..utils.logger import get_logger
from ..utils.template_utils import check_templates, render_statement, split_statements


class ProviderDriver(ABC):
    """
    Lifecycle contract implemented once per provider type.

    Drivers are stateless apart from their broker and are shared by every
    concurrent operation, so they must not keep per-call state on self.
    """

    provider_type: ProviderType

    def __init__(self, broker: Optional[ConnectionBroker] = None):
        self.broker = broker if broker is not None else self.default_broker()
        self.logger = get_logger()

    @abstractmethod
    def default_broker(self) -> ConnectionBroker:
        """Broker used when none is injected."""

    def validate_provider_inputs(
        self, raw_inputs: Union[Mapping[str, Any], BaseInputSchema]
    ) -> Any:
        """
        Structural validation followed by provider-specific cross-field checks.

        Raises:
            ValidationError: If the inputs are malformed
            TemplateError: If a statement template references an undefined variable
        """
        inputs = validate_provider_inputs(self.provider_type, raw_inputs)
        self.check_inputs(inputs)
        return inputs

    def check_inputs(self, inputs: Any) -> None:
        """Cross-field checks; no network I/O."""

    def has_native_renewal(self, inputs: Any) -> bool:
        """Whether renew extends the principal's lifetime on the external system."""
        return False

    @abstractmethod
    def create(self, inputs: Any, expire_at: datetime) -> ProviderCreateResult:
        """Provision a new principal that should live until `expire_at`."""

    @abstractmethod
    def validate_connection(self, inputs: Any) -> bool:
        """Connect and authenticate without provisioning anything."""

    @abstractmethod
    def revoke(self, inputs: Any, entity_id: str) -> ProviderEntityResult:
        """Remove the principal. A principal that is already gone counts as revoked."""

    def renew(self, inputs: Any, entity_id: str, expire_at: datetime) -> ProviderEntityResult:
        """Extend the principal's lifetime. Without native renewal this is a no-op."""
        return ProviderEntityResult(entity_id=entity_id)


class StatementProviderDriver(ProviderDriver):
    """
    Driver for backends administered with statement templates.

    Rendering always happens before the broker is asked for a connection, so a
    broken template never reaches the external system.
    """

    creation_field = "creationStatement"
    revocation_field = "revocationStatement"
    renew_field = "renewStatement"

    def context_variables(self, inputs: Any) -> Dict[str, Any]:
        """Provider context available to every template (database, keyspace, ...)."""
        return {}

    def creation_variables(
        self, inputs: Any, credentials: CredentialMaterial, expire_at: datetime
    ) -> Dict[str, Any]:
        return {
            **self.context_variables(inputs),
            TemplateVariable.USERNAME.value: credentials.username,
            TemplateVariable.PASSWORD.value: credentials.password,
            TemplateVariable.EXPIRATION.value: format_expiration(expire_at),
        }

    def revocation_variables(self, inputs: Any, entity_id: str) -> Dict[str, Any]:
        return {**self.context_variables(inputs), TemplateVariable.USERNAME.value: entity_id}

    def renew_variables(self, inputs: Any, entity_id: str, expire_at: datetime) -> Dict[str, Any]:
        return {
            **self.context_variables(inputs),
            TemplateVariable.USERNAME.value: entity_id,
            TemplateVariable.EXPIRATION.value: format_expiration(expire_at),
        }

    def _names(self, variables: Mapping[str, Any]) -> Set[str]:
        return set(variables.keys())

    def check_inputs(self, inputs: Any) -> None:
        placeholder = CredentialMaterial(username="u", password="p")
        now = datetime.now()
        check_templates(
            {self.creation_field: inputs.creation_statement},
            self._names(self.creation_variables(inputs, placeholder, now)),
        )
        check_templates(
            {self.revocation_field: inputs.revocation_statement},
            self._names(self.revocation_variables(inputs, "u")),
        )
        check_templates(
            {self.renew_field: getattr(inputs, "renew_statement", None)},
            self._names(self.renew_variables(inputs, "u", now)),
        )

    def has_native_renewal(self, inputs: Any) -> bool:
        return bool(getattr(inputs, "renew_statement", None))

    def render_creation(
        self, inputs: Any, credentials: CredentialMaterial, expire_at: datetime
    ) -> str:
        return render_statement(
            inputs.creation_statement,
            self.creation_variables(inputs, credentials, expire_at),
            field=self.creation_field,
        )

    def render_revocation(self, inputs: Any, entity_id: str) -> str:
        return render_statement(
            inputs.revocation_statement,
            self.revocation_variables(inputs, entity_id),
            field=self.revocation_field,
        )

    def render_renewal(self, inputs: Any, entity_id: str, expire_at: datetime) -> str:
        return render_statement(
            inputs.renew_statement,
            self.renew_variables(inputs, entity_id, expire_at),
            field=self.renew_field,
        )

    @staticmethod
    def split(rendered: str) -> list:
        return split_statements(rendered)
