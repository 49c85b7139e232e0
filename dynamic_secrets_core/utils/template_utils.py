"""
Statement templating for administrator-authored creation, renewal and revocation statements.

Placeholders are written ``{{name}}`` (inner whitespace allowed) and replaced
textually. Rendering fails closed: a template that references a variable not in
the supplied mapping raises TemplateError and nothing is returned.

SECURITY NOTE - trust boundary:
    Values are substituted verbatim. No quoting or escaping is applied, because
    administrators rely on precise control over the generated statements (for
    example quoting identifiers one way for Postgres and another for MSSQL).
    Generated usernames and passwords only ever contain characters that are safe
    inside quoted identifiers and string literals, but the template text itself
    is executed as-is against the target system. Whoever can write a provider
    configuration can run arbitrary statements with the configured admin
    credentials. Access to provider configurations is guarded by the platform's
    authorization layer, not here.
"""

import re
from typing import Iterable, List, Mapping, Optional

from ..exceptions import TemplateError

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def template_variables(template: str) -> List[str]:
    """Names referenced by a template, in order of first appearance."""
    seen: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def render_statement(
    template: str, variables: Mapping[str, object], field: Optional[str] = None
) -> str:
    """
    Render a statement template.

    Args:
        template: Administrator-authored template
        variables: Values available to the template
        field: Configuration field the template came from, for error context

    Returns:
        The executable statement

    Raises:
        TemplateError: If the template references an undefined variable
    """
    undefined = [name for name in template_variables(template) if name not in variables]
    if undefined:
        raise TemplateError(
            f"Statement template references undefined variable(s): {', '.join(undefined)}",
            undefined=undefined,
            field=field,
            available_variables=sorted(variables.keys()),
        )

    return PLACEHOLDER_PATTERN.sub(lambda match: str(variables[match.group(1)]), template)


def split_statements(rendered: str, separator: str = ";") -> List[str]:
    """Split a rendered multi-statement script into individual non-empty statements."""
    return [statement.strip() for statement in rendered.split(separator) if statement.strip()]


def check_templates(
    templates: Mapping[str, Optional[str]], variable_names: Iterable[str]
) -> None:
    """
    Verify every configured template only references known variables.

    Args:
        templates: Field name to template text; None entries are skipped
        variable_names: Variables the provider will supply at render time

    Raises:
        TemplateError: For the first template with undefined variables
    """
    placeholders = {name: "" for name in variable_names}
    for field, template in templates.items():
        if template is not None:
            render_statement(template, placeholders, field=field)
