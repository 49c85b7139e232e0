"""
Shared test fixtures.

Provides configuration and logging isolation, an in-memory SQLite lease
database, and helpers for building lease services over mocked drivers.
"""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from dynamic_secrets_core.config import AppConfig, LeaseConfig, reset_config, set_config
from dynamic_secrets_core.config import DatabaseConfig
from dynamic_secrets_core.db.db_config import Base, DatabaseManager, import_all_models
from dynamic_secrets_core.exceptions import clear_correlation_id
from dynamic_secrets_core.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def isolated_config():
    """Every test starts from a known configuration and a clean correlation id."""
    config = AppConfig(
        lease=LeaseConfig(default_ttl=timedelta(hours=1), max_ttl=timedelta(hours=24)),
        database=DatabaseConfig(connection_string="sqlite:///:memory:"),
    )
    set_config(config)
    clear_correlation_id()
    yield config
    reset_config()
    reset_logging()
    clear_correlation_id()


@pytest.fixture(scope="session")
def db_manager() -> DatabaseManager:
    """SQLite in-memory database shared by the repository tests."""
    import_all_models()
    manager = DatabaseManager(DatabaseConfig(connection_string="sqlite:///:memory:"))
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """Fresh tables for each test."""
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.get_session()
    yield session
    session.rollback()
    session.close()
    db_manager.scoped_session.remove()
    Base.metadata.drop_all(db_manager.engine)
