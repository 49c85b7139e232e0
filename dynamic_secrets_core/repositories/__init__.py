from .lease_repository import InMemoryLeaseRepository, LeaseRepository, SqlLeaseRepository

__all__ = ["InMemoryLeaseRepository", "LeaseRepository", "SqlLeaseRepository"]
