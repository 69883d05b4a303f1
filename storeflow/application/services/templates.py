"""Template resolution for action fields.

Placeholders are ``{{ data.PATH }}`` (resolved against the event payload)
and ``{{ context.PATH }}`` (resolved against the execution context).
Paths are dotted; numeric segments index into lists. A placeholder whose
value is missing or None is left in the output unchanged.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(data|context)\.([^}]+?)\s*\}\}")


def get_path(tree: Any, path: str | None) -> Any:
    """Walk ``tree`` along a dotted path; return None on any miss."""
    if not path:
        return None
    current = tree
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list | tuple):
            if not segment.isdecimal():
                return None
            try:
                index = int(segment)
            except ValueError:
                return None
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def to_display_string(value: Any) -> str:
    """String form used for substitution and ``contains`` comparisons.

    Booleans render as ``true``/``false``, integral floats without a
    fractional part, lists comma-joined and mappings as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list | tuple):
        return ",".join(to_display_string(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, default=str)
    return str(value)


def resolve_template(template: str, bindings: dict[str, Any]) -> str:
    """Replace every placeholder in ``template`` from ``bindings``.

    Args:
        template: Text possibly containing placeholders.
        bindings: ``{"data": payload, "context": context_tree}``.

    Returns:
        Rendered text; text without placeholders is returned as-is.
    """

    def _substitute(match: re.Match[str]) -> str:
        root, path = match.group(1), match.group(2).strip()
        value = get_path(bindings.get(root), path)
        if value is None:
            return match.group(0)
        return to_display_string(value)

    return _PLACEHOLDER_RE.sub(_substitute, template)


def resolve_value(value: Any, bindings: dict[str, Any]) -> Any:
    """Render strings; pass every other value through unchanged."""
    if isinstance(value, str):
        return resolve_template(value, bindings)
    return value


def resolve_mapping(values: dict[str, Any], bindings: dict[str, Any]) -> dict[str, Any]:
    """Render the top-level string values of a mapping."""
    return {key: resolve_value(value, bindings) for key, value in values.items()}
