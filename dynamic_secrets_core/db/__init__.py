from .db_config import Base, DatabaseManager, close_db, get_db_manager, initialize_db
from .db_lease_models import DynamicSecretLease

__all__ = [
    "Base",
    "DatabaseManager",
    "DynamicSecretLease",
    "close_db",
    "get_db_manager",
    "initialize_db",
]
