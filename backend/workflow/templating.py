"""Variable substitution: resolves ``{{ dotted.path }}`` placeholders.

Placeholders are resolved against the execution context by sequential key
lookup; numeric segments index into lists. Anything that does not resolve
(missing key, ``None`` value, bad index) is left in the output verbatim.
Substitution never raises.
"""

import re
from typing import Any

from workflow.coercion import stringify

PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def resolve_path(context: Any, path: str) -> Any:
    """Resolve ``a.b.0.c`` against nested dicts/lists.

    Returns the module-private ``_MISSING`` sentinel when any segment fails,
    use ``lookup`` for a ``None``-returning variant.
    """
    current = context
    for segment in path.strip().split("."):
        segment = segment.strip()
        if isinstance(current, dict):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, list):
            try:
                index = int(segment)
            except ValueError:
                return _MISSING
            if index < 0 or index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def lookup(context: Any, path: str, default: Any = None) -> Any:
    value = resolve_path(context, path)
    return default if value is _MISSING else value


def replace_variables(template: Any, context: dict) -> Any:
    """Substitute every resolvable placeholder in a template string.

    Args:
        template: Template text. Non-string values are returned unchanged.
        context: Current execution context.

    Returns:
        The substituted string.
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    def _replace(match: re.Match) -> str:
        value = resolve_path(context, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return stringify(value)

    return PLACEHOLDER_RE.sub(_replace, template)


def replace_object_variables(value: Any, context: dict) -> Any:
    """Apply ``replace_variables`` to every string leaf of a nested value."""
    if isinstance(value, str):
        return replace_variables(value, context)
    if isinstance(value, dict):
        return {k: replace_object_variables(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [replace_object_variables(item, context) for item in value]
    return value
