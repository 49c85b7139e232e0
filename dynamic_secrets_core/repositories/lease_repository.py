"""
Lease persistence.

The lease service only needs to look a lease up by entity id and save it back.
Two implementations are provided: an in-process dictionary and a SQL table.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.db_config import DatabaseManager
from ..db.db_lease_models import DynamicSecretLease
from ..enums import LeaseStatus, ProviderType
from ..exceptions import RepositoryError
from ..schemas.lease_schemas import Lease, utc_now


class LeaseRepository(ABC):
    """Storage for lease records, keyed by entity id."""

    @abstractmethod
    def get(self, entity_id: str) -> Optional[Lease]:
        """Return the lease for `entity_id`, or None."""

    @abstractmethod
    def save(self, lease: Lease) -> Lease:
        """Insert or update a lease."""

    @abstractmethod
    def list_expired(self, now: Optional[datetime] = None) -> List[Lease]:
        """Active leases whose expiry has passed, for an external sweeper."""


class InMemoryLeaseRepository(LeaseRepository):
    """Thread-safe dictionary of leases."""

    def __init__(self):
        self._leases: Dict[str, Lease] = {}
        self._lock = threading.Lock()

    def get(self, entity_id: str) -> Optional[Lease]:
        with self._lock:
            lease = self._leases.get(entity_id)
            return lease.model_copy() if lease is not None else None

    def save(self, lease: Lease) -> Lease:
        stored = lease.model_copy(update={"data": None})
        with self._lock:
            self._leases[lease.entity_id] = stored
        return lease

    def list_expired(self, now: Optional[datetime] = None) -> List[Lease]:
        now = now or utc_now()
        with self._lock:
            return [
                lease.model_copy()
                for lease in self._leases.values()
                if lease.is_active and lease.is_expired(now)
            ]


def _to_lease(row: DynamicSecretLease) -> Lease:
    return Lease(
        entity_id=row.entity_id,
        provider_type=ProviderType(row.provider_type),
        expire_at=row.expire_at,
        status=LeaseStatus(row.status),
        created_at=row.created_at,
        revoked_at=row.revoked_at,
    )


class SqlLeaseRepository(LeaseRepository):
    """Leases stored in the ``dynamic_secret_leases`` table."""

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        if session_factory is None:
            if db_manager is None:
                raise ValueError("Either db_manager or session_factory is required")
            session_factory = db_manager.session_factory
        self._session_factory = session_factory

    def get(self, entity_id: str) -> Optional[Lease]:
        session = self._session_factory()
        try:
            row = session.query(DynamicSecretLease).filter_by(entity_id=entity_id).one_or_none()
            return _to_lease(row) if row is not None else None
        except SQLAlchemyError as e:
            raise RepositoryError(
                f"Failed to load lease {entity_id}", cause=e, entity_id=entity_id
            ) from e
        finally:
            session.close()

    def save(self, lease: Lease) -> Lease:
        session = self._session_factory()
        try:
            row = (
                session.query(DynamicSecretLease)
                .filter_by(entity_id=lease.entity_id)
                .one_or_none()
            )
            if row is None:
                row = DynamicSecretLease(
                    entity_id=lease.entity_id,
                    provider_type=lease.provider_type.value,
                    created_at=lease.created_at,
                )
                session.add(row)
            row.status = lease.status.value
            row.expire_at = lease.expire_at
            row.revoked_at = lease.revoked_at
            session.commit()
            return lease
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                f"Failed to save lease {lease.entity_id}", cause=e, entity_id=lease.entity_id
            ) from e
        finally:
            session.close()

    def list_expired(self, now: Optional[datetime] = None) -> List[Lease]:
        now = now or utc_now()
        session = self._session_factory()
        try:
            rows = (
                session.query(DynamicSecretLease)
                .filter(DynamicSecretLease.status == LeaseStatus.ACTIVE.value)
                .all()
            )
            # SQLite drops tzinfo, so the comparison happens on the model
            return [lease for lease in map(_to_lease, rows) if lease.is_expired(now)]
        except SQLAlchemyError as e:
            raise RepositoryError("Failed to list expired leases", cause=e) from e
        finally:
            session.close()
