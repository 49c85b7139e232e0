from .lease_service import LeaseService

__all__ = ["LeaseService"]
