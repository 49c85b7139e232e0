"""
Lease lifecycle service.

Drives the Pending -> Active -> (renew) -> Revoked state machine over the
provider drivers and records each lease in a LeaseRepository. Lifecycle calls
for the same entity id are serialized; calls for different leases run in
parallel.
"""

import math
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar, Union

from ..config import AppConfig, LeaseConfig, get_config
from ..context.operation_context import OperationHandler
from ..enums import LeaseStatus, ProviderType
from ..exceptions import (
    BaseError,
    ErrorCode,
    LeaseNotActiveError,
    ProviderOperationError,
    ProvisioningFailedError,
    RenewUnsupportedError,
    TemplateError,
    ValidationError,
)
from ..providers.base import ProviderDriver
from ..providers.registry import ProviderRegistry, get_registry
from ..repositories.lease_repository import InMemoryLeaseRepository, LeaseRepository
from ..schemas.lease_schemas import Lease, utc_now
from ..schemas.provider_schemas import BaseInputSchema, ProviderConfig, parse_provider_config
from ..utils.logger import get_logger

T = TypeVar("T")

ConfigLike = Union[ProviderConfig, Mapping[str, Any]]
TtlLike = Union[timedelta, int, float, None]


class _LeaseLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class LeaseService:
    """
    Create, renew and revoke dynamic secrets, and check provider connectivity.

    Failure policy for create: a driver that fails part-way is not rolled back.
    The failure is reported as ProvisioningFailedError, carrying the entity id
    when the driver got far enough to name the principal, and no lease is
    recorded. Cleanup is the caller's decision.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        repository: Optional[LeaseRepository] = None,
        config: Optional[AppConfig] = None,
    ):
        self.registry = registry or get_registry()
        self.repository = repository or InMemoryLeaseRepository()
        self._config = config
        self.logger = get_logger()
        self._operations = OperationHandler(self.logger)
        self._locks: Dict[str, _LeaseLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def lease_config(self) -> LeaseConfig:
        return (self._config or get_config()).lease

    # ==================== INTERNALS ====================

    @contextmanager
    def _exclusive(self, entity_id: str) -> Iterator[None]:
        """Hold the per-lease lock; entries are dropped once no caller needs them."""
        with self._locks_guard:
            entry = self._locks.get(entity_id)
            if entry is None:
                entry = self._locks[entity_id] = _LeaseLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[entity_id]

    def _resolve(self, config: ConfigLike) -> Tuple[ProviderDriver, BaseInputSchema]:
        """Structural validation, driver lookup and template pre-flight. No network I/O."""
        provider_config = parse_provider_config(config)
        driver = self.registry.resolve(provider_config.provider_type)
        driver.check_inputs(provider_config.inputs)
        return driver, provider_config.inputs

    def _ttl(self, ttl: TtlLike, field: str = "ttl") -> timedelta:
        policy = self.lease_config
        if ttl is None:
            return policy.default_ttl
        if isinstance(ttl, bool) or not isinstance(ttl, (timedelta, int, float)):
            raise ValidationError(
                f"{field} must be a timedelta or a number of seconds",
                field=field,
                error_code=ErrorCode.TYPE_MISMATCH,
            )
        try:
            if not isinstance(ttl, timedelta) and not math.isfinite(ttl):
                raise ValidationError(
                    f"{field} must be a finite number of seconds",
                    field=field,
                    error_code=ErrorCode.CONSTRAINT_VIOLATION,
                )
            duration = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        except OverflowError as e:
            raise ValidationError(
                f"{field} is out of range",
                field=field,
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                cause=e,
            ) from e
        if duration.total_seconds() <= 0:
            raise ValidationError(
                f"{field} must be positive",
                field=field,
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
            )
        if duration > policy.max_ttl:
            raise ValidationError(
                f"{field} exceeds the maximum of {int(policy.max_ttl.total_seconds())} seconds",
                field=field,
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                max_ttl_seconds=policy.max_ttl.total_seconds(),
            )
        return duration

    def _call_provider(self, action: str, entity_id: Optional[str], fn: Callable[[], T]) -> T:
        """Run a driver call, surfacing unexpected exceptions as ProviderOperationError."""
        try:
            return fn()
        except BaseError:
            raise
        except Exception as e:
            raise ProviderOperationError(
                f"Failed to {action}: {e}", cause=e, entity_id=entity_id
            ) from e

    @staticmethod
    def _check_provider(lease: Lease, driver: ProviderDriver) -> None:
        if lease.provider_type != driver.provider_type:
            raise ValidationError(
                f"Lease {lease.entity_id} belongs to provider {lease.provider_type.value}, "
                f"not {driver.provider_type.value}",
                field="type",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                entity_id=lease.entity_id,
            )

    # ==================== LIFECYCLE OPERATIONS ====================

    def validate_config(
        self, provider_type: Union[ProviderType, str], raw_inputs: Mapping[str, Any]
    ) -> BaseInputSchema:
        """
        Validate provider inputs without touching the external system.

        Returns:
            The typed inputs model for the provider

        Raises:
            UnsupportedProviderError: If the provider type is unknown
            ValidationError: If a field is missing or malformed (``field`` names it)
            TemplateError: If a statement references an undefined variable
        """
        with self._operations.operation(
            "lease.validate_config", provider_type=getattr(provider_type, "value", provider_type)
        ):
            driver = self.registry.resolve(provider_type)
            return driver.validate_provider_inputs(raw_inputs)

    def create_lease(self, config: ConfigLike, ttl: TtlLike = None) -> Lease:
        """
        Provision a new principal and record an Active lease expiring after `ttl`.

        The returned lease carries the one-time credential payload in ``data``;
        it is never persisted or logged.

        Raises:
            ValidationError, TemplateError, UnsupportedProviderError: Before any network call
            ProvisioningFailedError: If the provider call or the lease record fails
        """
        with self._operations.operation("lease.create") as op:
            driver, inputs = self._resolve(config)
            duration = self._ttl(ttl)
            provider_type = driver.provider_type
            op.add_context(provider_type=provider_type.value)

            expire_at = utc_now() + duration
            try:
                result = driver.create(inputs, expire_at)
            except (ValidationError, TemplateError, ProvisioningFailedError):
                raise
            except Exception as e:
                message = e.message if isinstance(e, BaseError) else str(e)
                raise ProvisioningFailedError(
                    f"Failed to create {provider_type.value} principal: {message}",
                    cause=e,
                    provider_type=provider_type.value,
                ) from e

            lease = Lease(
                entity_id=result.entity_id,
                provider_type=provider_type,
                expire_at=expire_at,
                status=LeaseStatus.ACTIVE,
                data=result.data,
            )
            op.add_context(entity_id=lease.entity_id)

            try:
                self.repository.save(lease)
            except Exception as e:
                # The principal exists but nothing tracks it
                raise ProvisioningFailedError(
                    f"Principal {lease.entity_id} was created but its lease could not be recorded",
                    entity_id=lease.entity_id,
                    cause=e,
                    provider_type=provider_type.value,
                ) from e

            self.logger.info(
                "Lease created",
                extra={
                    "entity_id": lease.entity_id,
                    "provider_type": provider_type.value,
                    "expire_at": expire_at.isoformat(),
                },
            )
            return lease

    def renew_lease(self, config: ConfigLike, entity_id: str, new_ttl: TtlLike = None) -> Lease:
        """
        Push the lease's expiry to now + `new_ttl`; expiry never moves backwards.

        Providers with native renewal extend the principal on the external
        system. Otherwise the extension is recorded here only, unless logical
        renewal is disabled in LeaseConfig.

        Raises:
            LeaseNotActiveError: If the lease is unknown, revoked or expired
            RenewUnsupportedError: If the provider cannot renew and logical renewal is off
            ConnectionFailedError: If the external system is unreachable
        """
        with self._operations.operation("lease.renew", entity_id=entity_id) as op:
            driver, inputs = self._resolve(config)
            duration = self._ttl(new_ttl, field="new_ttl")
            op.add_context(provider_type=driver.provider_type.value)

            with self._exclusive(entity_id):
                lease = self.repository.get(entity_id)
                if lease is None:
                    raise LeaseNotActiveError(f"No lease found for {entity_id}", entity_id=entity_id)
                self._check_provider(lease, driver)

                if lease.status != LeaseStatus.ACTIVE:
                    raise LeaseNotActiveError(
                        f"Lease {entity_id} is {lease.status.value}",
                        entity_id=entity_id,
                        status=lease.status.value,
                    )

                now = utc_now()
                if lease.is_expired(now):
                    self.repository.save(lease.model_copy(update={"status": LeaseStatus.EXPIRED}))
                    raise LeaseNotActiveError(
                        f"Lease {entity_id} expired at {lease.expire_at.isoformat()}",
                        entity_id=entity_id,
                        status=LeaseStatus.EXPIRED.value,
                    )

                native = driver.has_native_renewal(inputs)
                if not native and not self.lease_config.allow_logical_renewal:
                    raise RenewUnsupportedError(
                        f"{driver.provider_type.value} has no renew statement and "
                        "logical renewal is disabled",
                        entity_id=entity_id,
                        provider_type=driver.provider_type.value,
                    )

                expire_at = max(now + duration, now + lease.remaining(now))
                self._call_provider(
                    "renew lease", entity_id, lambda: driver.renew(inputs, entity_id, expire_at)
                )

                renewed = lease.model_copy(update={"expire_at": expire_at})
                self.repository.save(renewed)

            self.logger.info(
                "Lease renewed",
                extra={
                    "entity_id": entity_id,
                    "expire_at": expire_at.isoformat(),
                    "renewal": "native" if native else "logical",
                },
            )
            return renewed

    def revoke_lease(self, config: ConfigLike, entity_id: str) -> Lease:
        """
        Remove the principal and mark the lease Revoked.

        Idempotent: a lease that is already Revoked returns without contacting
        the external system, and a principal the external system no longer
        knows counts as revoked. An entity id with no lease record is still
        revoked on the external system and recorded as Revoked.

        Raises:
            ConnectionFailedError: If the external system is unreachable
            ProviderOperationError: If the external system rejects the request
        """
        with self._operations.operation("lease.revoke", entity_id=entity_id) as op:
            driver, inputs = self._resolve(config)
            op.add_context(provider_type=driver.provider_type.value)

            with self._exclusive(entity_id):
                lease = self.repository.get(entity_id)
                if lease is not None:
                    self._check_provider(lease, driver)
                    if lease.status == LeaseStatus.REVOKED:
                        self.logger.info("Lease already revoked", extra={"entity_id": entity_id})
                        return lease

                self._call_provider(
                    "revoke lease", entity_id, lambda: driver.revoke(inputs, entity_id)
                )

                now = utc_now()
                if lease is None:
                    self.logger.warning(
                        "Revoked principal with no lease record", extra={"entity_id": entity_id}
                    )
                    lease = Lease(
                        entity_id=entity_id,
                        provider_type=driver.provider_type,
                        expire_at=now,
                        status=LeaseStatus.REVOKED,
                        revoked_at=now,
                    )
                else:
                    lease = lease.model_copy(
                        update={"status": LeaseStatus.REVOKED, "revoked_at": now}
                    )
                self.repository.save(lease)

            self.logger.info("Lease revoked", extra={"entity_id": entity_id})
            return lease

    def test_connection(self, config: ConfigLike) -> bool:
        """
        Connect and authenticate with the provider's admin credentials.

        Raises:
            ConnectionFailedError: If the external system is unreachable or rejects the credentials
        """
        with self._operations.operation("lease.test_connection") as op:
            driver, inputs = self._resolve(config)
            op.add_context(provider_type=driver.provider_type.value)
            return bool(
                self._call_provider(
                    "validate connection", None, lambda: driver.validate_connection(inputs)
                )
            )

    # ==================== QUERIES ====================

    def get_lease(self, entity_id: str) -> Optional[Lease]:
        return self.repository.get(entity_id)

    def expired_leases(self) -> List[Lease]:
        """Active leases past their expiry, for the external sweeper to revoke."""
        return self.repository.list_expired(utc_now())
