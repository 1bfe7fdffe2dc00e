"""
Text helpers shared by the prompt builders.

``render_template`` fills ``{{ name }}`` placeholders in prompt templates.
Unknown names and ``None`` values render as an empty string; everything else
is passed through ``str()``.
"""

import re
from typing import Any, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


def render_template(template: str, variables: Optional[Mapping[str, Any]] = None) -> str:
    """
    Substitute named placeholders in a prompt template.

    Args:
        template: Template text containing ``{{ name }}`` placeholders.
        variables: Values by placeholder name.

    Returns:
        Rendered text.

    Example:
        >>> render_template("Hello {{ name }}!", {"name": "Acme"})
        'Hello Acme!'
    """
    variables = variables or {}

    def _replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def truncate_text(text: Optional[str], max_length: int, suffix: str = "") -> str:
    """Cut ``text`` to ``max_length`` characters, appending ``suffix`` when cut."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix
