"""Utility modules for dynamic secret providers."""

from .credential_utils import (
    CredentialMaterial,
    format_expiration,
    generate_credentials,
    generate_password,
    generate_username,
)
from .logger import configure_logging, get_logger
from .template_utils import check_templates, render_statement, split_statements, template_variables

__all__ = [
    "CredentialMaterial",
    "check_templates",
    "configure_logging",
    "format_expiration",
    "generate_credentials",
    "generate_password",
    "generate_username",
    "get_logger",
    "render_statement",
    "split_statements",
    "template_variables",
]
