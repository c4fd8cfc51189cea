"""Core type definitions for the formengine package.

This module defines the closed enumerations used throughout the engine:
- Renderer: Widget tags a field definition may declare
- ConditionOperator: Comparison operators for visibility/enablement conditions
- LayoutKind: Node kinds of a layout tree
- EventType: Typed events emitted by the form store
- SchemaIssueCode: Diagnostic codes for schema reference and structure problems

These enums are ``str`` subclasses so schema documents can carry the plain
string tags and compare equal to the enum members.
"""

from enum import Enum


class Renderer(str, Enum):
    """Renderer tags a field definition may declare.

    The set is closed: the engine dispatches on these tags (see
    ``formengine.inputs``) and treats anything else as unsupported.
    """
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SWITCH = "switch"
    DATE = "date"
    NUMBER = "number"
    FILE = "file"


class ConditionOperator(str, Enum):
    """Comparison operators for ``visibleWhen``/``enabledWhen`` conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    IN = "in"
    NOT_IN = "notIn"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


class LayoutKind(str, Enum):
    """Node kinds of a layout tree."""
    FIELD = "field"
    GRID = "grid"
    STACK = "stack"
    SECTION = "section"


class EventType(str, Enum):
    """Event types emitted by the form store.

    Every mutation of form state emits one typed event after the mutation
    has been applied.
    """
    FORM_INITIALIZED = "form.initialized"
    FIELD_CHANGED = "field.changed"
    FIELDS_CHANGED = "fields.changed"
    FIELD_TOUCHED = "field.touched"
    FIELD_ERROR_SET = "field.error_set"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    SUBMIT_STARTED = "submit.started"
    SUBMIT_BLOCKED = "submit.blocked"
    SUBMIT_SUCCEEDED = "submit.succeeded"
    SUBMIT_FAILED = "submit.failed"
    FORM_RESET = "form.reset"
    FIELD_RESET = "field.reset"
    SCHEMA_REPLACED = "schema.replaced"


class SchemaIssueCode(str, Enum):
    """Diagnostic codes for problems found in a schema.

    Reference problems are reported, never raised: the engine treats the
    reference as "not found" and keeps working.
    """
    INVALID_DOCUMENT = "invalid_document"
    UNKNOWN_LAYOUT_FIELD = "unknown_layout_field"
    UNREACHABLE_FIELD = "unreachable_field"
    UNKNOWN_CONDITION_FIELD = "unknown_condition_field"
    UNKNOWN_OPERATOR = "unknown_operator"


__all__ = [
    "Renderer",
    "ConditionOperator",
    "LayoutKind",
    "EventType",
    "SchemaIssueCode",
]
