"""
Tests for generated credential material.
"""

import string
from datetime import datetime, timedelta, timezone

import pytest

from dynamic_secrets_core.utils.credential_utils import (
    CredentialMaterial,
    format_expiration,
    generate_credentials,
    generate_password,
    generate_username,
)


class TestGenerateUsername:
    def test_default_shape(self):
        username = generate_username()

        assert len(username) == 32
        assert username[0] in string.ascii_lowercase
        assert set(username) <= set(string.ascii_lowercase + string.digits)

    def test_uppercase_for_oracle(self):
        username = generate_username(30, uppercase=True)

        assert len(username) == 30
        assert username == username.upper()
        assert username[0].isalpha()

    def test_prefix_counts_toward_length(self):
        username = generate_username(12, prefix="dyn_")

        assert username.startswith("dyn_")
        assert len(username) == 12

    def test_prefix_must_leave_room(self):
        with pytest.raises(ValueError):
            generate_username(4, prefix="dyn_")

    def test_usernames_are_unique(self):
        assert len({generate_username() for _ in range(50)}) == 50


class TestGeneratePassword:
    def test_character_classes(self):
        for _ in range(20):
            password = generate_password()
            assert len(password) == 48
            assert any(c.islower() for c in password)
            assert any(c.isupper() for c in password)
            assert any(c.isdigit() for c in password)
            assert password.isalnum()


class TestCredentialMaterial:
    def test_password_hidden_from_repr(self):
        credentials = generate_credentials()

        assert isinstance(credentials, CredentialMaterial)
        assert credentials.password not in repr(credentials)
        assert credentials.username in repr(credentials)


class TestFormatExpiration:
    def test_converts_to_utc(self):
        expire_at = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_expiration(expire_at) == "2024-01-01 10:00:00"

    def test_naive_taken_as_utc(self):
        assert format_expiration(datetime(2024, 6, 30, 23, 59, 59)) == "2024-06-30 23:59:59"
