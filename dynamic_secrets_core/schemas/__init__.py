from .lease_schemas import Lease, ProviderCreateResult, ProviderEntityResult
from .provider_schemas import (
    INPUT_SCHEMAS,
    ProviderConfig,
    coerce_provider_type,
    parse_provider_config,
    validate_provider_inputs,
)

__all__ = [
    "INPUT_SCHEMAS",
    "Lease",
    "ProviderConfig",
    "ProviderCreateResult",
    "ProviderEntityResult",
    "coerce_provider_type",
    "parse_provider_config",
    "validate_provider_inputs",
]
