"""Field validation for the formengine package.

This module checks a single field's current value against the rules it
declares, and validates a whole form by running that check over every
visible field.

Validation failures are data, never exceptions: ``validate_field`` returns
the message of the first failing rule, or None when the value passes. Rules
are checked in a fixed order and the first failure wins:

1. hidden fields (visibility condition false) always pass
2. required
3. empty optional values pass without further checks
4. minLength / maxLength (strings and lists)
5. min / max (numbers)
6. pattern (string form of the value)
7. custom predicate
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from formengine.conditions import evaluate_condition, is_number
from formengine.schema import FieldDefinition, FormSchema

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Validation failed"


def is_empty(value: Any) -> bool:
    """True for None, blank strings (after trimming) and empty lists.

    Examples:
        >>> is_empty("   ")
        True
        >>> is_empty(0)
        False
        >>> is_empty([])
        True
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def to_text(value: Any) -> str:
    """String form of a value, as tested by pattern rules.

    Booleans render as ``true``/``false``, integral floats without a
    fractional part and lists as comma-joined items, so a pattern sees the
    same text for a value whichever way it was produced.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(item) for item in value)
    if value is None:
        return ""
    return str(value)


def required_message(definition: FieldDefinition) -> Optional[str]:
    """The message reported when a required field is empty, or None if not required."""
    rules = definition.rules
    if rules is None or not rules.required:
        return None
    if isinstance(rules.required, str):
        return rules.required
    return f"{definition.label} is required"


def validate_field(
    definition: FieldDefinition,
    value: Any,
    all_values: Mapping[str, Any],
) -> Optional[str]:
    """Validate one field's value against its rules.

    Args:
        definition: The field definition
        value: The field's current value
        all_values: All current form values (read only; passed to the
            visibility condition and the custom predicate)

    Returns:
        The error message of the first failing rule, or None if valid

    Examples:
        >>> from formengine.schema import FieldDefinition, RuleSet, ThresholdRule
        >>> age = FieldDefinition(
        ...     id="age",
        ...     label="Age",
        ...     rules=RuleSet(required="Age required", min=ThresholdRule(18, "Must be 18+")),
        ... )
        >>> validate_field(age, 10, {"age": 10})
        'Must be 18+'
        >>> validate_field(age, "", {"age": ""})
        'Age required'
        >>> validate_field(age, 25, {"age": 25}) is None
        True
    """
    if definition.visible_when is not None and not evaluate_condition(
        definition.visible_when, all_values
    ):
        return None

    rules = definition.rules
    if rules is None:
        return None

    if is_empty(value):
        return required_message(definition)

    if isinstance(value, (str, list, tuple)):
        if rules.min_length is not None and len(value) < rules.min_length.value:
            return rules.min_length.message
        if rules.max_length is not None and len(value) > rules.max_length.value:
            return rules.max_length.message

    if is_number(value):
        if rules.min is not None and value < rules.min.value:
            return rules.min.message
        if rules.max is not None and value > rules.max.value:
            return rules.max.message

    if rules.pattern is not None and not rules.pattern.matches(to_text(value)):
        return rules.pattern.message

    if rules.validate is not None:
        result = rules.validate(value, all_values)
        if isinstance(result, str) and result:
            return result
        if result is False:
            return GENERIC_FAILURE_MESSAGE

    return None


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating every visible field of a form.

    Attributes:
        is_valid: Whether every visible field passed
        errors: Error message per failing field id, in schema order
        validated_fields: Ids of the fields that were checked (the visible ones)

    Examples:
        >>> from formengine.schema import FieldDefinition, FormSchema, RuleSet
        >>> schema = FormSchema(id="f", fields={
        ...     "name": FieldDefinition(id="name", label="Name", rules=RuleSet(required=True)),
        ... })
        >>> result = validate_form(schema, {})
        >>> result.errors
        {'name': 'Name is required'}
    """
    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    validated_fields: List[str] = field(default_factory=list)

    @property
    def invalid_fields(self) -> List[str]:
        return list(self.errors.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": dict(self.errors),
            "validatedFields": list(self.validated_fields),
            "invalidFields": self.invalid_fields,
        }


def validate_form(schema: FormSchema, values: Mapping[str, Any]) -> ValidationResult:
    """Validate every currently visible field of a schema.

    Fields hidden by their own visibility condition are left out entirely,
    so the returned error map never carries errors for hidden fields.

    Args:
        schema: The form schema
        values: Current form values keyed by field id

    Returns:
        ValidationResult built from scratch for the given values
    """
    errors: Dict[str, str] = {}
    validated: List[str] = []
    for field_id, definition in schema.fields.items():
        if not evaluate_condition(definition.visible_when, values):
            continue
        validated.append(field_id)
        message = validate_field(definition, values.get(field_id), values)
        if message:
            errors[field_id] = message

    if errors:
        logger.debug(
            "Form '%s' failed validation on %d field(s): %s",
            schema.id,
            len(errors),
            ", ".join(errors),
        )
    return ValidationResult(is_valid=not errors, errors=errors, validated_fields=validated)


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "is_empty",
    "to_text",
    "required_message",
    "validate_field",
    "ValidationResult",
    "validate_form",
]
