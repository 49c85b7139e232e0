"""
Generation of ephemeral credential material.

Usernames and passwords come from the `secrets` CSPRNG and are shaped to fit the
identifier rules of each backend. Material is never persisted by this package.
"""

import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..constants import EXPIRATION_FORMAT

LOWER_ALPHANUMERIC = string.ascii_lowercase + string.digits
ALPHANUMERIC = string.ascii_letters + string.digits

DEFAULT_USERNAME_LENGTH = 32
DEFAULT_PASSWORD_LENGTH = 48


@dataclass(frozen=True)
class CredentialMaterial:
    """Generated username/password pair handed to statement templates."""

    username: str
    password: str = field(repr=False)


def random_string(length: int, alphabet: str = ALPHANUMERIC) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_username(
    length: int = DEFAULT_USERNAME_LENGTH,
    alphabet: str = LOWER_ALPHANUMERIC,
    prefix: str = "",
    uppercase: bool = False,
) -> str:
    """
    Generate a username that always starts with a letter.

    Args:
        length: Total length including the prefix
        alphabet: Characters allowed after the first letter
        prefix: Fixed prefix, counted in length
        uppercase: Upper-case the result (Oracle folds unquoted identifiers)
    """
    if length <= len(prefix):
        raise ValueError("username length must exceed the prefix length")

    first = "" if prefix else secrets.choice(string.ascii_lowercase)
    remaining = length - len(prefix) - len(first)
    username = f"{prefix}{first}{random_string(remaining, alphabet)}"
    return username.upper() if uppercase else username


def generate_password(length: int = DEFAULT_PASSWORD_LENGTH) -> str:
    """Alphanumeric password, safe to embed in quoted literals of every supported dialect."""
    # Guarantee at least one of each class so backend password policies accept it
    while True:
        password = random_string(length)
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return password


def generate_credentials(
    username_length: int = DEFAULT_USERNAME_LENGTH,
    password_length: int = DEFAULT_PASSWORD_LENGTH,
    uppercase_username: bool = False,
) -> CredentialMaterial:
    return CredentialMaterial(
        username=generate_username(username_length, uppercase=uppercase_username),
        password=generate_password(password_length),
    )


def format_expiration(expire_at: datetime) -> str:
    """Render an expiry instant in UTC for substitution into statements."""
    if expire_at.tzinfo is None:
        expire_at = expire_at.replace(tzinfo=timezone.utc)
    return expire_at.astimezone(timezone.utc).strftime(EXPIRATION_FORMAT)
