"""Connection router: decides which outgoing edges fire."""

from typing import Optional

from workflow.coercion import is_truthy, strict_equals
from workflow.definition import Connection, Condition


def evaluate_condition(condition: Optional[Condition], context: dict) -> bool:
    if condition is None:
        return True

    actual = context.get(condition.field)
    op = condition.operator

    if op == "equals":
        return strict_equals(actual, condition.value)
    if op == "not_equals":
        return not strict_equals(actual, condition.value)
    if op == "true":
        return is_truthy(actual)
    if op == "false":
        return not is_truthy(actual)

    # Unknown operators let the edge fire so the graph is never stranded
    return True


def should_follow(connection: Connection, context: dict) -> bool:
    """Return True when ``connection`` is eligible to fire given ``context``."""
    return evaluate_condition(connection.condition, context)
