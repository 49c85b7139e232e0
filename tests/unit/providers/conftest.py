"""
Provider test fixtures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest


@pytest.fixture
def client():
    return MagicMock(name="client")


@pytest.fixture
def expire_at():
    return datetime.now(timezone.utc) + timedelta(hours=1)
