"""
Exception hierarchy for the dynamic secret provider framework.

Every error carries an error code, an HTTP-style status code, an optional cause
and free-form context. Errors log themselves when constructed so callers only
need to decide whether to retry or surface them.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"
    CONSTRAINT_VIOLATION = "2004"
    TEMPLATE_ERROR = "2005"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"
    EXPIRED = "3004"

    # Business logic errors (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    UNSUPPORTED_OPERATION = "4005"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    PROVISIONING_FAILED = "5005"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code for API responses
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Lazy import: the logger module imports config, which imports this module
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.value}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to dict for API responses.

        Args:
            include_cause: Include cause information (useful for debugging)

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "type": type(self).__name__,
                "message": self.message,
                "retryable": self.retryable,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """
        Add additional context to the error (fluent interface).

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


class ValidationError(BaseError):
    """Bad or missing input fields. `field` holds the dotted path of the offending field."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        self.field = field
        super().__init__(message, error_code, 400, cause, **context)


class TemplateError(BaseError):
    """A statement template references variables that are not defined."""

    def __init__(
        self,
        message: str,
        undefined: Sequence[str] = (),
        cause: Optional[Exception] = None,
        **context,
    ):
        self.undefined = list(undefined)
        context["undefined_variables"] = self.undefined
        super().__init__(message, ErrorCode.TEMPLATE_ERROR, 400, cause, **context)


class UnsupportedProviderError(BaseError):
    """The provider type tag is not one of the supported variants."""

    def __init__(self, provider_type: Any, cause: Optional[Exception] = None, **context):
        self.provider_type = provider_type
        super().__init__(
            f"Unsupported dynamic secret provider: {provider_type!r}",
            ErrorCode.UNSUPPORTED_OPERATION,
            400,
            cause,
            provider_type=str(provider_type),
            **context,
        )


class ConnectionFailedError(BaseError):
    """The external system could not be reached or refused authentication. Always retryable."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_type: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if provider_type:
            context["provider_type"] = provider_type
        super().__init__(message, ErrorCode.CONNECTION_ERROR, 503, cause, **context)


class ProvisioningFailedError(BaseError):
    """A create call failed, possibly after partially provisioning the principal."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        self.entity_id = entity_id
        if entity_id:
            context["entity_id"] = entity_id
        super().__init__(message, ErrorCode.PROVISIONING_FAILED, 502, cause, **context)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return isinstance(self.cause, ConnectionFailedError)


class ProviderOperationError(BaseError):
    """The external system rejected or failed a request."""

    def __init__(self, message: str, cause: Optional[Exception] = None, **context):
        super().__init__(message, ErrorCode.EXTERNAL_API_ERROR, 502, cause, **context)


class RenewUnsupportedError(BaseError):
    """The provider cannot extend the lease and logical renewal is disabled."""

    def __init__(self, message: str, **context):
        super().__init__(message, ErrorCode.UNSUPPORTED_OPERATION, 409, **context)


class LeaseNotActiveError(BaseError):
    """The lease is revoked, expired or unknown."""

    def __init__(self, message: str, entity_id: str, status: Optional[str] = None, **context):
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            message,
            ErrorCode.INVALID_STATE_TRANSITION,
            409,
            entity_id=entity_id,
            status=status,
            **context,
        )


class RepositoryError(BaseError):
    """Lease persistence errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None, **context):
        super().__init__(message, ErrorCode.DATABASE_ERROR, 500, cause, **context)


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
