"""
Tests for the in-memory and SQL lease repositories.
"""

from datetime import timedelta, timezone
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from dynamic_secrets_core.db import DynamicSecretLease
from dynamic_secrets_core.enums import LeaseStatus, ProviderType
from dynamic_secrets_core.exceptions import RepositoryError
from dynamic_secrets_core.repositories import InMemoryLeaseRepository, SqlLeaseRepository
from dynamic_secrets_core.schemas.lease_schemas import Lease, utc_now


def make_lease(entity_id="user1", expires_in=timedelta(hours=1), **overrides):
    values = {
        "entity_id": entity_id,
        "provider_type": ProviderType.SQL_DATABASE,
        "expire_at": utc_now() + expires_in,
        "status": LeaseStatus.ACTIVE,
    }
    values.update(overrides)
    return Lease(**values)


def as_utc(value):
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TestInMemoryLeaseRepository:
    def test_save_and_get(self):
        repository = InMemoryLeaseRepository()
        lease = make_lease(data={"DB_PASSWORD": "secret"})

        assert repository.save(lease) is lease
        stored = repository.get("user1")

        assert stored.entity_id == "user1"
        assert stored.status == LeaseStatus.ACTIVE
        assert stored.data is None

    def test_get_missing(self):
        assert InMemoryLeaseRepository().get("nobody") is None

    def test_returned_leases_are_copies(self):
        repository = InMemoryLeaseRepository()
        repository.save(make_lease())

        repository.get("user1").status = LeaseStatus.REVOKED

        assert repository.get("user1").status == LeaseStatus.ACTIVE

    def test_list_expired_only_returns_active(self):
        repository = InMemoryLeaseRepository()
        repository.save(make_lease("fresh"))
        repository.save(make_lease("stale", expires_in=-timedelta(minutes=1)))
        repository.save(
            make_lease("gone", expires_in=-timedelta(minutes=1), status=LeaseStatus.REVOKED)
        )

        assert [lease.entity_id for lease in repository.list_expired()] == ["stale"]


class TestSqlLeaseRepository:
    def test_requires_a_session_source(self):
        with pytest.raises(ValueError):
            SqlLeaseRepository()

    def test_save_and_get(self, db_manager, db_session):
        repository = SqlLeaseRepository(db_manager=db_manager)
        lease = make_lease(data={"DB_PASSWORD": "secret"})

        repository.save(lease)
        stored = repository.get("user1")

        assert stored.entity_id == "user1"
        assert stored.provider_type == ProviderType.SQL_DATABASE
        assert stored.status == LeaseStatus.ACTIVE
        assert as_utc(stored.expire_at) == lease.expire_at
        assert stored.data is None

    def test_credentials_never_reach_the_table(self, db_manager, db_session):
        repository = SqlLeaseRepository(db_manager=db_manager)
        repository.save(make_lease(data={"DB_PASSWORD": "secret"}))

        row = db_session.query(DynamicSecretLease).filter_by(entity_id="user1").one()

        assert "secret" not in repr(vars(row))

    def test_save_updates_existing_row(self, db_manager, db_session):
        repository = SqlLeaseRepository(db_manager=db_manager)
        lease = make_lease()
        repository.save(lease)

        revoked_at = utc_now()
        repository.save(
            lease.model_copy(update={"status": LeaseStatus.REVOKED, "revoked_at": revoked_at})
        )

        stored = repository.get("user1")
        assert stored.status == LeaseStatus.REVOKED
        assert as_utc(stored.revoked_at) == revoked_at
        assert db_session.query(DynamicSecretLease).count() == 1

    def test_get_missing(self, db_manager, db_session):
        assert SqlLeaseRepository(db_manager=db_manager).get("nobody") is None

    def test_list_expired(self, db_manager, db_session):
        repository = SqlLeaseRepository(db_manager=db_manager)
        repository.save(make_lease("fresh"))
        repository.save(make_lease("stale", expires_in=-timedelta(minutes=1)))
        repository.save(
            make_lease("gone", expires_in=-timedelta(minutes=1), status=LeaseStatus.REVOKED)
        )

        assert [lease.entity_id for lease in repository.list_expired()] == ["stale"]

    def test_database_errors_are_repository_errors(self):
        session = Mock()
        session.query.side_effect = SQLAlchemyError("database is locked")
        repository = SqlLeaseRepository(session_factory=lambda: session)

        with pytest.raises(RepositoryError) as exc_info:
            repository.get("user1")

        assert exc_info.value.context["entity_id"] == "user1"
        session.close.assert_called_once()

    def test_failed_save_rolls_back(self):
        session = Mock()
        session.query.return_value.filter_by.return_value.one_or_none.return_value = None
        session.commit.side_effect = SQLAlchemyError("disk I/O error")
        repository = SqlLeaseRepository(session_factory=lambda: session)

        with pytest.raises(RepositoryError):
            repository.save(make_lease())

        session.rollback.assert_called_once()
        session.close.assert_called_once()
