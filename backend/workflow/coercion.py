"""Loose value coercion used by conditions, routing and templating.

Workflow definitions are authored in a browser editor, so comparisons follow
the editor's scripting rules rather than Python's:

- ``strict_equals`` never treats ``True`` as ``1``
- ``to_number`` turns unparseable input into NaN (and ``None`` into 0)
- ``is_truthy`` treats empty lists/dicts as truthy and NaN as falsy
"""

import json
import math
from typing import Any

NAN = float("nan")


def strict_equals(left: Any, right: Any) -> bool:
    """Type-and-value equality; booleans never equal numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    if isinstance(left, (dict, list)):
        # Objects compare by identity
        return left is right
    return left == right


def to_number(value: Any) -> float:
    """Coerce a value to a float, NaN when it cannot be parsed."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return NAN
    if isinstance(value, list):
        if not value:
            return 0.0
        if len(value) == 1:
            return to_number(to_text(value[0]))
    return NAN


def to_text(value: Any) -> str:
    """Stringify a value the way the editor's String() would."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, list):
        return ",".join("" if item is None else to_text(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def stringify(value: Any) -> str:
    """Stringify a resolved placeholder value.

    Same as ``to_text`` except that lists and dicts render as compact JSON.
    """
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return to_text(value)


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer():
        return str(int(value))
    return repr(value)
