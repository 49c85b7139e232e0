"""
Pydantic schemas for leases and provider call results.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import LeaseStatus, ProviderType


def utc_now() -> datetime:
    """Return current UTC time with timezone info attached."""
    return datetime.now(timezone.utc)


class ProviderCreateResult(BaseModel):
    """What a provider returns after provisioning a principal."""

    entity_id: str = Field(..., min_length=1, description="External handle of the principal")
    data: Dict[str, Any] = Field(
        default_factory=dict,
        repr=False,
        description="One-time credential payload for the caller",
    )


class ProviderEntityResult(BaseModel):
    """What a provider returns from renew and revoke."""

    entity_id: str = Field(..., min_length=1)


class Lease(BaseModel):
    """Record tracking a generated credential's identity and expiry."""

    model_config = ConfigDict(from_attributes=True)

    entity_id: str = Field(..., min_length=1, description="External handle of the principal")
    provider_type: ProviderType
    expire_at: datetime
    status: LeaseStatus = LeaseStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    revoked_at: Optional[datetime] = None

    # Returned once from create_lease; never persisted or serialized
    data: Optional[Dict[str, Any]] = Field(default=None, exclude=True, repr=False)

    @property
    def is_active(self) -> bool:
        return self.status == LeaseStatus.ACTIVE

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        expire_at = self.expire_at
        # SQLite hands back naive datetimes
        if expire_at.tzinfo is None:
            expire_at = expire_at.replace(tzinfo=timezone.utc)
        return expire_at <= now

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        now = now or utc_now()
        expire_at = self.expire_at
        if expire_at.tzinfo is None:
            expire_at = expire_at.replace(tzinfo=timezone.utc)
        return max(expire_at - now, timedelta(0))
