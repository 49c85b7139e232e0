"""
Pydantic schemas for dynamic secret provider inputs.

Each provider type owns one closed input schema. `ProviderConfig` is the
discriminated union of all seven, keyed on ``type``. Validation is purely
structural: strings are trimmed before length checks, hosts are lower-cased,
unknown fields are rejected, and no network I/O happens here.
"""

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..enums import ElasticSearchAuthType, ProviderType, SqlClient
from ..exceptions import ErrorCode, UnsupportedProviderError, ValidationError

# Legacy client tags accepted for SqlDatabase.client
SQL_CLIENT_ALIASES = {"mysql2": SqlClient.MYSQL.value, "oracledb": SqlClient.ORACLE.value}


class BaseInputSchema(BaseModel):
    """Base schema for all provider inputs."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )


# Trimmed and lower-cased
Host = Annotated[str, StringConstraints(strip_whitespace=True, to_lower=True, min_length=1)]


class SqlDatabaseInputs(BaseInputSchema):
    """Relational database (postgres, mysql, oracle, mssql)."""

    client: SqlClient
    host: Host
    port: int = Field(..., gt=0, le=65535)
    database: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str
    creation_statement: str = Field(..., alias="creationStatement", min_length=1)
    revocation_statement: str = Field(..., alias="revocationStatement", min_length=1)
    renew_statement: Optional[str] = Field(None, alias="renewStatement")
    ca: Optional[str] = None

    @field_validator("client", mode="before")
    @classmethod
    def normalize_client(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return SQL_CLIENT_ALIASES.get(v, v)
        return v


class CassandraInputs(BaseInputSchema):
    """Cassandra cluster reached through one contact point."""

    host: Host
    port: int = Field(..., gt=0, le=65535)
    local_data_center: str = Field(..., alias="localDataCenter", min_length=1)
    keyspace: Optional[str] = None
    username: str = Field(..., min_length=1)
    password: str
    creation_statement: str = Field(..., alias="creationStatement", min_length=1)
    revocation_statement: str = Field(..., alias="revocationStatement", min_length=1)
    renew_statement: Optional[str] = Field(None, alias="renewStatement")
    ca: Optional[str] = None


class AwsIamInputs(BaseInputSchema):
    """AWS IAM users provisioned through the IAM API."""

    access_key: str = Field(..., alias="accessKey", min_length=1)
    secret_access_key: str = Field(..., alias="secretAccessKey", min_length=1)
    region: str = Field(..., min_length=1)
    aws_path: Optional[str] = Field(None, alias="awsPath")
    permission_boundary_policy_arn: Optional[str] = Field(
        None, alias="permissionBoundaryPolicyArn"
    )
    policy_document: Optional[str] = Field(None, alias="policyDocument")
    user_groups: Optional[str] = Field(None, alias="userGroups")
    policy_arns: Optional[str] = Field(None, alias="policyArns")

    @staticmethod
    def _split(value: Optional[str]) -> List[str]:
        if not value:
            return []
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def group_names(self) -> List[str]:
        return self._split(self.user_groups)

    @property
    def policy_arn_list(self) -> List[str]:
        return self._split(self.policy_arns)


class RedisInputs(BaseInputSchema):
    """Redis server with ACL support (6.0+)."""

    host: Host
    port: int = Field(..., gt=0, le=65535)
    username: str = Field(..., min_length=1)
    password: Optional[str] = None
    creation_statement: str = Field(..., alias="creationStatement", min_length=1)
    revocation_statement: str = Field(..., alias="revocationStatement", min_length=1)
    renew_statement: Optional[str] = Field(None, alias="renewStatement")
    ca: Optional[str] = None


class AwsElastiCacheInputs(BaseInputSchema):
    """ElastiCache (Redis OSS) cluster users managed through the ElastiCache API."""

    cluster_name: str = Field(..., alias="clusterName", min_length=1)
    access_key_id: str = Field(..., alias="accessKeyId", min_length=1)
    secret_access_key: str = Field(..., alias="secretAccessKey", min_length=1)
    region: str = Field(..., min_length=1)
    creation_statement: str = Field(..., alias="creationStatement", min_length=1)
    revocation_statement: str = Field(..., alias="revocationStatement", min_length=1)
    ca: Optional[str] = None


class MongoAtlasRole(BaseInputSchema):
    database_name: str = Field(..., alias="databaseName", min_length=1)
    role_name: str = Field(..., alias="roleName", min_length=1)
    collection_name: Optional[str] = Field(None, alias="collectionName")


class MongoAtlasScope(BaseInputSchema):
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)


class MongoAtlasInputs(BaseInputSchema):
    """MongoDB Atlas project database users managed through the Atlas Admin API."""

    admin_public_key: str = Field(..., alias="adminPublicKey", min_length=1)
    admin_private_key: str = Field(..., alias="adminPrivateKey", min_length=1)
    group_id: str = Field(
        ...,
        alias="groupId",
        min_length=1,
        description="24-hexadecimal digit project id",
    )
    roles: List[MongoAtlasRole] = Field(..., min_length=1)
    scopes: List[MongoAtlasScope] = Field(...)


class ElasticSearchUserAuth(BaseInputSchema):
    type: Literal["user"]
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ElasticSearchApiKeyAuth(BaseInputSchema):
    type: Literal["api-key"]
    api_key: str = Field(..., alias="apiKey", min_length=1)
    api_key_id: str = Field(..., alias="apiKeyId", min_length=1)


ElasticSearchAuth = Annotated[
    Union[ElasticSearchUserAuth, ElasticSearchApiKeyAuth], Field(discriminator="type")
]


class ElasticSearchInputs(BaseInputSchema):
    """Elasticsearch cluster with the security plugin enabled."""

    host: Host
    port: int = Field(..., gt=0, le=65535)
    auth: ElasticSearchAuth
    creation_statement: str = Field(..., alias="creationStatement", min_length=1)
    revocation_statement: str = Field(..., alias="revocationStatement", min_length=1)
    ca: Optional[str] = None


ProviderInputs = Union[
    SqlDatabaseInputs,
    CassandraInputs,
    AwsIamInputs,
    RedisInputs,
    AwsElastiCacheInputs,
    MongoAtlasInputs,
    ElasticSearchInputs,
]

INPUT_SCHEMAS: Mapping[ProviderType, Type[BaseInputSchema]] = {
    ProviderType.SQL_DATABASE: SqlDatabaseInputs,
    ProviderType.CASSANDRA: CassandraInputs,
    ProviderType.AWS_IAM: AwsIamInputs,
    ProviderType.REDIS: RedisInputs,
    ProviderType.AWS_ELASTICACHE: AwsElastiCacheInputs,
    ProviderType.MONGO_ATLAS: MongoAtlasInputs,
    ProviderType.ELASTIC_SEARCH: ElasticSearchInputs,
}


# ==================== PROVIDER CONFIG (discriminated union) ====================


class _ProviderConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str
    inputs: BaseInputSchema

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType(self.type)


class SqlDatabaseProviderConfig(_ProviderConfigBase):
    type: Literal["sql-database"]
    inputs: SqlDatabaseInputs


class CassandraProviderConfig(_ProviderConfigBase):
    type: Literal["cassandra"]
    inputs: CassandraInputs


class AwsIamProviderConfig(_ProviderConfigBase):
    type: Literal["aws-iam"]
    inputs: AwsIamInputs


class RedisProviderConfig(_ProviderConfigBase):
    type: Literal["redis"]
    inputs: RedisInputs


class AwsElastiCacheProviderConfig(_ProviderConfigBase):
    type: Literal["aws-elasticache"]
    inputs: AwsElastiCacheInputs


class MongoAtlasProviderConfig(_ProviderConfigBase):
    type: Literal["mongo-db-atlas"]
    inputs: MongoAtlasInputs


class ElasticSearchProviderConfig(_ProviderConfigBase):
    type: Literal["elastic-search"]
    inputs: ElasticSearchInputs


ProviderConfig = Annotated[
    Union[
        SqlDatabaseProviderConfig,
        CassandraProviderConfig,
        AwsIamProviderConfig,
        RedisProviderConfig,
        AwsElastiCacheProviderConfig,
        MongoAtlasProviderConfig,
        ElasticSearchProviderConfig,
    ],
    Field(discriminator="type"),
]

_provider_config_adapter: TypeAdapter = TypeAdapter(ProviderConfig)


# ==================== VALIDATION ENTRY POINTS ====================


def coerce_provider_type(provider_type: Union[ProviderType, str]) -> ProviderType:
    """
    Resolve a provider type tag.

    Raises:
        UnsupportedProviderError: If the tag is not one of the seven providers
    """
    if isinstance(provider_type, ProviderType):
        return provider_type
    try:
        return ProviderType(str(provider_type).strip())
    except ValueError as e:
        raise UnsupportedProviderError(provider_type, cause=e) from e


def _field_path(loc: tuple, prefix: str = "") -> str:
    parts = [str(part) for part in loc]
    path = ".".join(parts)
    return f"{prefix}.{path}" if prefix and path else (prefix or path)


def _translate(e: PydanticValidationError, prefix: str = "") -> ValidationError:
    """Convert the first pydantic error into our ValidationError with a field path."""
    errors = e.errors(include_url=False, include_input=False)
    first = errors[0]
    field = _field_path(_strip_tags(first["loc"]), prefix)
    error_code = ErrorCode.VALIDATION_FAILED
    if first["type"] == "missing":
        error_code = ErrorCode.MISSING_REQUIRED
    elif first["type"] == "extra_forbidden":
        error_code = ErrorCode.CONSTRAINT_VIOLATION

    return ValidationError(
        f"Validation failed for {field or 'inputs'}: {first['msg']}",
        field=field,
        error_code=error_code,
        cause=e,
        constraint=first["type"],
        errors=[
            {"field": _field_path(_strip_tags(err["loc"]), prefix), "constraint": err["type"]}
            for err in errors
        ],
    )


_UNION_TAGS = {tag.value for tag in ProviderType} | {tag.value for tag in ElasticSearchAuthType}


def _strip_tags(loc: tuple) -> tuple:
    # Discriminated unions insert the tag value into the location
    return tuple(part for part in loc if part not in _UNION_TAGS)


def validate_provider_inputs(
    provider_type: Union[ProviderType, str], raw_inputs: Mapping[str, Any]
) -> ProviderInputs:
    """
    Validate and normalize raw inputs for a provider type.

    Args:
        provider_type: Provider type tag
        raw_inputs: Caller supplied configuration mapping (camelCase keys)

    Returns:
        The normalized, immutable inputs model

    Raises:
        UnsupportedProviderError: If the provider type is unknown
        ValidationError: If any field is missing or violates a constraint
    """
    resolved = coerce_provider_type(provider_type)
    schema = INPUT_SCHEMAS[resolved]

    if isinstance(raw_inputs, schema):
        return raw_inputs  # type: ignore[return-value]
    if not isinstance(raw_inputs, Mapping):
        raise ValidationError(
            "Provider inputs must be an object",
            field="inputs",
            error_code=ErrorCode.TYPE_MISMATCH,
            provider_type=resolved.value,
        )

    try:
        return schema.model_validate(dict(raw_inputs))  # type: ignore[return-value]
    except PydanticValidationError as e:
        raise _translate(e, prefix="inputs").add_context(provider_type=resolved.value) from e


def parse_provider_config(raw_config: Any) -> ProviderConfig:
    """
    Validate a ``{"type": ..., "inputs": {...}}`` document into a ProviderConfig.

    Raises:
        UnsupportedProviderError: If ``type`` is not a known provider
        ValidationError: If the document or its inputs are invalid
    """
    if isinstance(raw_config, _ProviderConfigBase):
        return raw_config  # type: ignore[return-value]
    if not isinstance(raw_config, Mapping):
        raise ValidationError(
            "Provider config must be an object",
            field="config",
            error_code=ErrorCode.TYPE_MISMATCH,
        )
    if "type" not in raw_config:
        raise ValidationError(
            "Validation failed for type: Field required",
            field="type",
            error_code=ErrorCode.MISSING_REQUIRED,
        )

    document = dict(raw_config)
    document["type"] = coerce_provider_type(document["type"]).value
    try:
        return _provider_config_adapter.validate_python(document)
    except PydanticValidationError as e:
        raise _translate(e) from e


def dump_inputs(inputs: BaseInputSchema) -> Dict[str, Any]:
    """Inputs as the camelCase document callers supplied."""
    return inputs.model_dump(by_alias=True, exclude_none=True, mode="json")
