"""Dynamic secret provider framework: validate, create, renew and revoke short-lived credentials."""

from .config import AppConfig, get_config, reset_config, set_config
from .enums import LeaseStatus, ProviderType
from .exceptions import (
    BaseError,
    ConnectionFailedError,
    LeaseNotActiveError,
    ProviderOperationError,
    ProvisioningFailedError,
    RenewUnsupportedError,
    TemplateError,
    UnsupportedProviderError,
    ValidationError,
)
from .schemas.lease_schemas import Lease
from .services.lease_service import LeaseService

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "BaseError",
    "ConnectionFailedError",
    "Lease",
    "LeaseNotActiveError",
    "LeaseService",
    "LeaseStatus",
    "ProviderOperationError",
    "ProviderType",
    "ProvisioningFailedError",
    "RenewUnsupportedError",
    "TemplateError",
    "UnsupportedProviderError",
    "ValidationError",
    "get_config",
    "reset_config",
    "set_config",
]
