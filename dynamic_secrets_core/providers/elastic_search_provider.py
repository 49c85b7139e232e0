"""
Elasticsearch provider.

The creation statement renders to the JSON body of a security ``PUT user``
request, for example::

    {"password": "{{password}}", "roles": ["viewer"], "full_name": "{{username}}"}

The revocation statement renders to ``{"username": "{{username}}"}``.
"""

from datetime import datetime
from typing import Any, Dict

from elasticsearch import NotFoundError

from ..brokers.elasticsearch_broker import ElasticSearchConnectionBroker
from ..enums import ProviderType
from ..schemas.lease_schemas import ProviderCreateResult, ProviderEntityResult
from ..schemas.provider_schemas import ElasticSearchInputs
from ..utils.credential_utils import CredentialMaterial, generate_credentials
from .aws_elasticache_provider import parse_json_statement
from .base import StatementProviderDriver

JSON_HEADERS = {"content-type": "application/json", "accept": "application/json"}


class ElasticSearchProvider(StatementProviderDriver):
    """Creates native realm users through the Elasticsearch security API."""

    provider_type = ProviderType.ELASTIC_SEARCH

    def default_broker(self) -> ElasticSearchConnectionBroker:
        return ElasticSearchConnectionBroker()

    def check_inputs(self, inputs: ElasticSearchInputs) -> None:
        super().check_inputs(inputs)
        placeholder = CredentialMaterial(username="u", password="p")
        parse_json_statement(
            self.render_creation(inputs, placeholder, datetime.now()), self.creation_field
        )
        parse_json_statement(self.render_revocation(inputs, "u"), self.revocation_field)

    def create(self, inputs: ElasticSearchInputs, expire_at: datetime) -> ProviderCreateResult:
        credentials = generate_credentials()
        body: Dict[str, Any] = parse_json_statement(
            self.render_creation(inputs, credentials, expire_at), self.creation_field
        )
        body.setdefault("password", credentials.password)

        self.broker.with_connection(
            inputs,
            lambda client: client.perform_request(
                "PUT",
                f"/_security/user/{credentials.username}",
                headers=JSON_HEADERS,
                body=body,
            ),
        )

        return ProviderCreateResult(
            entity_id=credentials.username,
            data={"DB_USERNAME": credentials.username, "DB_PASSWORD": body["password"]},
        )

    def validate_connection(self, inputs: ElasticSearchInputs) -> bool:
        return bool(self.broker.with_connection(inputs, lambda client: client.info()))

    def revoke(self, inputs: ElasticSearchInputs, entity_id: str) -> ProviderEntityResult:
        request = parse_json_statement(
            self.render_revocation(inputs, entity_id), self.revocation_field
        )
        username = request.get("username") or entity_id

        def delete(client: Any) -> None:
            try:
                client.security.delete_user(username=username)
            except NotFoundError:
                self.logger.info("User already deleted", extra={"entity_id": username})

        self.broker.with_connection(inputs, delete)
        return ProviderEntityResult(entity_id=entity_id)
