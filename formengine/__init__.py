"""formengine: a declarative form state and validation engine.

formengine takes a JSON-like form schema (fields, validation rules,
conditional visibility/enablement and layout) and provides:
- Condition evaluation for field visibility and enablement
- Per-field validation with ordered, short-circuiting rules
- A form store owning values, errors, touched flags and submit counters
- Schema introspection (defaults, layout field ids, dependencies)
- A typed event stream of every state change

Rendering is left to the host UI: it reads snapshots from the store and
feeds user edits back through ``set_value``/``set_touched``.

Basic usage:
    >>> from formengine import FormStore
    >>> schema = {
    ...     "id": "contact",
    ...     "meta": {"title": "Contact"},
    ...     "fields": {"email": {"label": "Email", "renderer": "text",
    ...                          "rules": {"required": True}}},
    ... }
    >>> store = FormStore(schema)
    >>> store.validate_all_fields()
    False
    >>> store.get_errors()
    {'email': 'Email is required'}
"""

__version__ = "0.1.0"
__author__ = "formengine contributors"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formengine.conditions import evaluate_condition
from formengine.config import EngineConfig
from formengine.errors import FormEngineError, InvalidSchemaError, SchemaIssue, SubmitInProgressError
from formengine.schema import Condition, FieldDefinition, FormSchema, RuleSet
from formengine.store import FormMeta, FormState, FormStore, Subscription, create_form_store
from formengine.validation import validate_field, validate_form

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormStore",
    "FormState",
    "FormMeta",
    "Subscription",
    "create_form_store",
    "FormSchema",
    "FieldDefinition",
    "RuleSet",
    "Condition",
    "EngineConfig",
    "evaluate_condition",
    "validate_field",
    "validate_form",
    "SchemaIssue",
    "FormEngineError",
    "InvalidSchemaError",
    "SubmitInProgressError",
]
