"""Condition evaluation for field visibility and enablement.

A field's ``visibleWhen``/``enabledWhen`` is a single Condition or a list of
them combined with AND. Evaluation is pure: the result depends only on the
condition and the current values.

Usage:
    >>> from formengine.schema import Condition
    >>> cond = Condition.from_dict({"field": "category", "op": "in", "value": ["a", "b"]})
    >>> evaluate_condition(cond, {"category": "c"})
    False
    >>> evaluate_condition(cond, {"category": "a"})
    True
"""

import logging
from typing import Any, Mapping

from formengine.schema import Condition, ConditionSpec, iter_conditions
from formengine.types import ConditionOperator

logger = logging.getLogger(__name__)


def is_number(value: Any) -> bool:
    """True for ints and floats. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """Compare two JSON-like values by type and value.

    Numbers compare numerically (``1 == 1.0``), but a boolean never equals a
    number and a string never equals a number. Lists (and tuples) and dicts
    compare element by element with the same strictness.

    Examples:
        >>> strict_equals(1, 1.0)
        True
        >>> strict_equals(1, True)
        False
        >>> strict_equals({"a": [1, "x"]}, {"a": [1, "x"]})
        True
    """
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            strict_equals(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            strict_equals(left[key], right[key]) for key in left
        )
    if type(left) is not type(right):
        return False
    return left == right


def is_known_operator(operator: Any) -> bool:
    """True if the operator tag is one of ConditionOperator."""
    try:
        ConditionOperator(operator)
    except ValueError:
        return False
    return True


def _contains(sequence: Any, value: Any) -> bool:
    return any(strict_equals(item, value) for item in sequence)


def evaluate_single(condition: Condition, values: Mapping[str, Any]) -> bool:
    """Evaluate one condition against the current values.

    A missing value behaves as ``None``. Unknown operators evaluate to True
    so that unrecognized input never hides or disables a field. They are
    logged at debug level here; ``check_schema_references`` reports them
    once as warnings when a schema is loaded.
    """
    field_value = values.get(condition.field)
    operator = condition.operator
    expected = condition.value

    if operator == ConditionOperator.EQUALS:
        return strict_equals(field_value, expected)

    if operator == ConditionOperator.NOT_EQUALS:
        return not strict_equals(field_value, expected)

    if operator == ConditionOperator.IN:
        return isinstance(expected, (list, tuple)) and _contains(expected, field_value)

    if operator == ConditionOperator.NOT_IN:
        if not isinstance(expected, (list, tuple)):
            return True
        return not _contains(expected, field_value)

    if operator == ConditionOperator.GREATER_THAN:
        return is_number(field_value) and is_number(expected) and field_value > expected

    if operator == ConditionOperator.LESS_THAN:
        return is_number(field_value) and is_number(expected) and field_value < expected

    logger.debug(
        "Unknown condition operator %r on field '%s'; treating condition as true",
        operator,
        condition.field,
    )
    return True


def evaluate_condition(condition: ConditionSpec, values: Mapping[str, Any]) -> bool:
    """Evaluate a condition spec (None, one condition, or an AND-list).

    Args:
        condition: The condition(s) to evaluate; None means "always true"
        values: Current form values keyed by field id

    Returns:
        True if every condition holds (vacuously True for None or [])
    """
    return all(evaluate_single(c, values) for c in iter_conditions(condition))


__all__ = [
    "is_number",
    "is_known_operator",
    "strict_equals",
    "evaluate_single",
    "evaluate_condition",
]
