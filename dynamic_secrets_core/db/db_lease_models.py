"""
Lease table.

Only the lease identity, status and expiry are stored. Credential material is
returned to the caller once and never written here.
"""

from sqlalchemy import Column, DateTime, Index, String

from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class DynamicSecretLease(Base, UUIDMixin, TimestampMixin):
    """Persisted lease record."""

    __tablename__ = "dynamic_secret_leases"

    entity_id = Column(String(255), nullable=False, unique=True)
    provider_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    expire_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_lease_status_expiry", "status", "expire_at"),)
