"""Form schema data model for the formengine package.

A form schema is a JSON-like document describing fields, validation rules,
conditional visibility/enablement and layout:

    >>> schema = FormSchema.from_dict({
    ...     "id": "signup",
    ...     "meta": {"title": "Sign up"},
    ...     "fields": {
    ...         "age": {
    ...             "label": "Age",
    ...             "renderer": "number",
    ...             "rules": {
    ...                 "required": "Age required",
    ...                 "min": {"value": 18, "message": "Must be 18+"},
    ...             },
    ...         },
    ...     },
    ...     "layout": [{"kind": "field", "fieldId": "age"}],
    ... })
    >>> schema.fields["age"].rules.min.value
    18

Documents keep the camelCase keys of the wire format (``visibleWhen``,
``minLength``, ``defaultValue``); the dataclasses use snake_case attributes.
Before a document is turned into dataclasses its structure is checked with
``jsonschema`` against SCHEMA_DOCUMENT, and every violation is reported as a
SchemaIssue on the raised InvalidSchemaError.

Schemas are not fully serializable: pattern rules hold compiled regular
expressions and custom validators are callables. ``to_dict`` writes patterns
back as strings and passes callables through unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from jsonschema import Draft7Validator
from typing_extensions import Protocol

from formengine.errors import InvalidSchemaError, SchemaIssue
from formengine.types import ConditionOperator, LayoutKind, Renderer, SchemaIssueCode

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for an absent optional value (distinct from ``None``)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_Missing":
        return self


MISSING: Any = _Missing()


class CustomValidator(Protocol):
    """Custom rule predicate.

    Returns True to pass, False for a generic failure, or an error message.
    """

    def __call__(self, value: Any, all_values: Mapping[str, Any]) -> Union[bool, str]:
        ...


def _ref(name: str) -> Dict[str, Any]:
    return {"$ref": f"#/definitions/{name}"}


# Structure every schema document must follow (JSON Schema draft 7)
SCHEMA_DOCUMENT: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["id", "fields"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "meta": {
            "type": "object",
            "required": ["title"],
            "properties": {
                "title": {"type": "string"},
                "subtitle": {"type": "string"},
                "description": {"type": "string"},
            },
        },
        "fields": {
            "type": "object",
            "additionalProperties": {"$ref": "#/definitions/field"},
        },
        "layout": {
            "type": "array",
            "items": {"$ref": "#/definitions/layoutNode"},
        },
    },
    "definitions": {
        "threshold": {
            "type": "object",
            "required": ["value", "message"],
            "properties": {
                "value": {"type": "number"},
                "message": {"type": "string"},
            },
        },
        "pattern": {
            "type": "object",
            "required": ["value", "message"],
            "properties": {
                "message": {"type": "string"},
            },
        },
        "rules": {
            "type": "object",
            "properties": {
                "required": {"type": ["boolean", "string"]},
                "minLength": _ref("threshold"),
                "maxLength": _ref("threshold"),
                "min": _ref("threshold"),
                "max": _ref("threshold"),
                "pattern": _ref("pattern"),
            },
        },
        "condition": {
            "type": "object",
            "required": ["field"],
            "properties": {
                "field": {"type": "string", "minLength": 1},
                "operator": {"type": "string"},
                "op": {"type": "string"},
            },
            "anyOf": [{"required": ["operator"]}, {"required": ["op"]}],
        },
        "conditions": {
            "anyOf": [
                {"$ref": "#/definitions/condition"},
                {"type": "array", "items": {"$ref": "#/definitions/condition"}},
            ],
        },
        "field": {
            "type": "object",
            "required": ["label", "renderer"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "label": {"type": "string"},
                "renderer": {"enum": [r.value for r in Renderer]},
                "placeholder": {"type": "string"},
                "inputType": {"type": "string"},
                "props": {"type": "object"},
                "rules": {"$ref": "#/definitions/rules"},
                "visibleWhen": {"$ref": "#/definitions/conditions"},
                "enabledWhen": {"$ref": "#/definitions/conditions"},
            },
        },
        "layoutNode": {
            "type": "object",
            "required": ["kind"],
            "properties": {
                "kind": {"enum": [k.value for k in LayoutKind]},
                "fieldId": {"type": "string"},
                "title": {"type": "string"},
                "withDivider": {"type": "boolean"},
                "cols": {"type": "integer", "minimum": 1},
                "colSpan": {"type": "integer", "minimum": 1},
                "spacing": {"enum": ["sm", "md", "lg"]},
                "collapsible": {"type": "boolean"},
                "children": {
                    "type": "array",
                    "items": {"$ref": "#/definitions/layoutNode"},
                },
            },
            "if": {"properties": {"kind": {"const": "field"}}},
            "then": {"required": ["fieldId"]},
        },
    },
}

Draft7Validator.check_schema(SCHEMA_DOCUMENT)
_DOCUMENT_VALIDATOR = Draft7Validator(SCHEMA_DOCUMENT)


def validate_schema_document(data: Any) -> List[SchemaIssue]:
    """Check a schema document against SCHEMA_DOCUMENT.

    Args:
        data: The raw schema document

    Returns:
        One SchemaIssue per violation, ordered by location (empty if valid)
    """
    errors = sorted(
        _DOCUMENT_VALIDATOR.iter_errors(data),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    issues: List[SchemaIssue] = []
    for error in errors:
        parts = [str(p) for p in error.absolute_path]
        path = ".".join(parts)
        field_id = parts[1] if len(parts) > 1 and parts[0] == "fields" else None
        location = f"'{path}'" if path else "document root"
        issues.append(
            SchemaIssue(
                code=SchemaIssueCode.INVALID_DOCUMENT,
                message=f"Schema {location}: {error.message}",
                field_id=field_id,
                path=path or None,
            )
        )
    return issues


def _operator_from(raw: Any) -> Union[ConditionOperator, str]:
    """Map an operator tag onto the enum, keeping unknown tags as raw strings."""
    if isinstance(raw, ConditionOperator):
        return raw
    try:
        return ConditionOperator(raw)
    except ValueError:
        return raw


def _renderer_from(raw: Any) -> Union[Renderer, str]:
    if isinstance(raw, Renderer):
        return raw
    try:
        return Renderer(raw)
    except ValueError:
        return raw


def _tag(value: Any) -> Any:
    return value.value if isinstance(value, (ConditionOperator, Renderer, LayoutKind)) else value


@dataclass(frozen=True)
class Condition:
    """A single comparison gating visibility or enablement.

    Attributes:
        field: Identifier of the field whose current value is compared
        operator: Comparison operator. Unknown operator tags are kept as raw
            strings; the evaluator treats them as always true.
        value: Literal to compare against

    Examples:
        >>> cond = Condition.from_dict({"field": "category", "op": "in", "value": ["a", "b"]})
        >>> cond.operator
        <ConditionOperator.IN: 'in'>
    """
    field: str
    operator: Union[ConditionOperator, str]
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "field": self.field,
            "operator": _tag(self.operator),
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        """Create Condition from dict. Accepts ``operator`` or ``op``."""
        raw_operator = data.get("operator", data.get("op"))
        return cls(
            field=data["field"],
            operator=_operator_from(raw_operator),
            value=data.get("value"),
        )


ConditionSpec = Union[Condition, List[Condition], None]
"""A field's ``visibleWhen``/``enabledWhen``: one condition, an AND-list, or none."""


def conditions_from(data: Any) -> ConditionSpec:
    """Build a ConditionSpec from its document form."""
    if data is None:
        return None
    if isinstance(data, Condition):
        return data
    if isinstance(data, (list, tuple)):
        return [c if isinstance(c, Condition) else Condition.from_dict(c) for c in data]
    return Condition.from_dict(data)


def conditions_to(spec: ConditionSpec) -> Any:
    """Write a ConditionSpec back to its document form."""
    if spec is None:
        return None
    if isinstance(spec, Condition):
        return spec.to_dict()
    return [c.to_dict() for c in spec]


def iter_conditions(spec: ConditionSpec) -> Iterator[Condition]:
    """Iterate a ConditionSpec as a flat sequence of conditions."""
    if spec is None:
        return
    if isinstance(spec, Condition):
        yield spec
        return
    yield from spec


@dataclass(frozen=True)
class ThresholdRule:
    """A numeric threshold with the message reported when it is violated."""
    value: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThresholdRule":
        return cls(value=data["value"], message=data["message"])


@dataclass(frozen=True)
class PatternRule:
    """A regular expression the string form of a value must match.

    Matching uses search semantics: the expression must match somewhere in
    the value, so anchor it with ``^...$`` to require a full match.
    """
    regex: re.Pattern
    message: str

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.regex.pattern, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatternRule":
        raw = data["value"]
        regex = raw if isinstance(raw, re.Pattern) else re.compile(raw)
        return cls(regex=regex, message=data["message"])


@dataclass(frozen=True)
class RuleSet:
    """Validation rules declared by a field.

    Attributes:
        required: False, True (generic "<label> is required" message), or
            the message to report
        min_length: Minimum length for strings and lists
        max_length: Maximum length for strings and lists
        min: Minimum for numbers
        max: Maximum for numbers
        pattern: Regular expression for the value's string form
        validate: Custom predicate, evaluated last
    """
    required: Union[bool, str] = False
    min_length: Optional[ThresholdRule] = None
    max_length: Optional[ThresholdRule] = None
    min: Optional[ThresholdRule] = None
    max: Optional[ThresholdRule] = None
    pattern: Optional[PatternRule] = None
    validate: Optional[CustomValidator] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {}
        if self.required:
            result["required"] = self.required
        if self.min_length is not None:
            result["minLength"] = self.min_length.to_dict()
        if self.max_length is not None:
            result["maxLength"] = self.max_length.to_dict()
        if self.min is not None:
            result["min"] = self.min.to_dict()
        if self.max is not None:
            result["max"] = self.max.to_dict()
        if self.pattern is not None:
            result["pattern"] = self.pattern.to_dict()
        if self.validate is not None:
            result["validate"] = self.validate
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSet":
        """Create RuleSet from dict."""

        def threshold(key: str) -> Optional[ThresholdRule]:
            return ThresholdRule.from_dict(data[key]) if data.get(key) is not None else None

        return cls(
            required=data.get("required", False),
            min_length=threshold("minLength"),
            max_length=threshold("maxLength"),
            min=threshold("min"),
            max=threshold("max"),
            pattern=PatternRule.from_dict(data["pattern"]) if data.get("pattern") is not None else None,
            validate=data.get("validate"),
        )


@dataclass(frozen=True)
class FieldDefinition:
    """One named input slot of a form.

    Attributes:
        id: Identifier, unique within the schema; the only cross-reference key
        label: Human-readable label
        renderer: Widget tag (raw string if outside the Renderer enumeration)
        placeholder: Optional placeholder text
        input_type: Optional input subtype (e.g., "email" for a text field)
        default_value: Default value, or MISSING when none is declared
        props: Renderer-specific configuration, opaque to the engine
        rules: Optional validation rules
        visible_when: Optional visibility condition(s)
        enabled_when: Optional enablement condition(s)
    """
    id: str
    label: str
    renderer: Union[Renderer, str] = Renderer.TEXT
    placeholder: Optional[str] = None
    input_type: Optional[str] = None
    default_value: Any = MISSING
    props: Dict[str, Any] = field(default_factory=dict)
    rules: Optional[RuleSet] = None
    visible_when: ConditionSpec = None
    enabled_when: ConditionSpec = None

    @property
    def has_default(self) -> bool:
        return self.default_value is not MISSING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "renderer": _tag(self.renderer),
        }
        if self.placeholder is not None:
            result["placeholder"] = self.placeholder
        if self.input_type is not None:
            result["inputType"] = self.input_type
        if self.has_default:
            result["defaultValue"] = self.default_value
        if self.props:
            result["props"] = self.props
        if self.rules is not None:
            result["rules"] = self.rules.to_dict()
        if self.visible_when is not None:
            result["visibleWhen"] = conditions_to(self.visible_when)
        if self.enabled_when is not None:
            result["enabledWhen"] = conditions_to(self.enabled_when)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], field_id: Optional[str] = None) -> "FieldDefinition":
        """Create FieldDefinition from dict.

        Args:
            data: Field document
            field_id: Key of the field in the schema's field mapping, used
                when the document carries no ``id`` of its own
        """
        rules = data.get("rules")
        return cls(
            id=data.get("id", field_id),
            label=data["label"],
            renderer=_renderer_from(data.get("renderer", Renderer.TEXT)),
            placeholder=data.get("placeholder"),
            input_type=data.get("inputType"),
            default_value=data["defaultValue"] if "defaultValue" in data else MISSING,
            props=dict(data.get("props") or {}),
            rules=RuleSet.from_dict(rules) if rules is not None else None,
            visible_when=conditions_from(data.get("visibleWhen")),
            enabled_when=conditions_from(data.get("enabledWhen")),
        )


@dataclass(frozen=True)
class LayoutNode:
    """A node of a layout tree.

    Only ``field`` nodes reference fields (through ``field_id``); the other
    kinds group children. The engine reads layouts only to enumerate the
    field identifiers they reference.
    """
    kind: Union[LayoutKind, str]
    field_id: Optional[str] = None
    title: Optional[str] = None
    with_divider: bool = False
    cols: Optional[int] = None
    col_span: Optional[int] = None
    spacing: Optional[str] = None
    collapsible: bool = False
    children: List["LayoutNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"kind": _tag(self.kind)}
        if self.field_id is not None:
            result["fieldId"] = self.field_id
        if self.title is not None:
            result["title"] = self.title
        if self.with_divider:
            result["withDivider"] = True
        if self.cols is not None:
            result["cols"] = self.cols
        if self.col_span is not None:
            result["colSpan"] = self.col_span
        if self.spacing is not None:
            result["spacing"] = self.spacing
        if self.collapsible:
            result["collapsible"] = True
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutNode":
        """Create LayoutNode (and its subtree) from dict."""
        kind = data["kind"]
        try:
            kind = LayoutKind(kind)
        except ValueError:
            pass
        return cls(
            kind=kind,
            field_id=data.get("fieldId"),
            title=data.get("title"),
            with_divider=data.get("withDivider", False),
            cols=data.get("cols"),
            col_span=data.get("colSpan"),
            spacing=data.get("spacing"),
            collapsible=data.get("collapsible", False),
            children=[cls.from_dict(child) for child in data.get("children") or []],
        )


@dataclass(frozen=True)
class SchemaMeta:
    """Descriptive metadata of a form."""
    title: str = ""
    subtitle: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"title": self.title}
        if self.subtitle is not None:
            result["subtitle"] = self.subtitle
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaMeta":
        return cls(
            title=data.get("title", ""),
            subtitle=data.get("subtitle"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class FormSchema:
    """A complete form definition.

    Attributes:
        id: Form identifier
        meta: Title, subtitle and description
        fields: Field definitions keyed by identifier. Insertion order is the
            default rendering and validation order.
        layout: Layout tree roots

    Examples:
        >>> schema = FormSchema(
        ...     id="contact",
        ...     fields={"email": FieldDefinition(id="email", label="Email")},
        ... )
        >>> schema.field_ids()
        ['email']
    """
    id: str
    meta: SchemaMeta = field(default_factory=SchemaMeta)
    fields: Dict[str, FieldDefinition] = field(default_factory=dict)
    layout: List[LayoutNode] = field(default_factory=list)

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        return self.fields.get(field_id)

    def field_ids(self) -> List[str]:
        return list(self.fields.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a schema document."""
        return {
            "id": self.id,
            "meta": self.meta.to_dict(),
            "fields": {field_id: f.to_dict() for field_id, f in self.fields.items()},
            "layout": [node.to_dict() for node in self.layout],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], validate: bool = True) -> "FormSchema":
        """Create FormSchema from a schema document.

        Args:
            data: The schema document
            validate: Check the document structure first

        Returns:
            The parsed FormSchema

        Raises:
            InvalidSchemaError: If the document structure is invalid, or a
                field's ``id`` disagrees with its key in ``fields``
        """
        if validate:
            issues = validate_schema_document(data)
            if issues:
                raise InvalidSchemaError(issues)

        fields: Dict[str, FieldDefinition] = {}
        mismatched: List[SchemaIssue] = []
        for field_id, field_data in (data.get("fields") or {}).items():
            definition = FieldDefinition.from_dict(field_data, field_id=field_id)
            if definition.id != field_id:
                mismatched.append(
                    SchemaIssue(
                        code=SchemaIssueCode.INVALID_DOCUMENT,
                        message=(
                            f"Field key '{field_id}' does not match its id "
                            f"'{definition.id}'"
                        ),
                        field_id=field_id,
                        path=f"fields.{field_id}.id",
                    )
                )
            fields[field_id] = definition
        if mismatched:
            raise InvalidSchemaError(mismatched)

        schema = cls(
            id=data["id"],
            meta=SchemaMeta.from_dict(data.get("meta") or {}),
            fields=fields,
            layout=[LayoutNode.from_dict(node) for node in data.get("layout") or []],
        )
        logger.debug("Loaded schema '%s' with %d fields", schema.id, len(fields))
        return schema


__all__ = [
    "MISSING",
    "CustomValidator",
    "SCHEMA_DOCUMENT",
    "validate_schema_document",
    "Condition",
    "ConditionSpec",
    "conditions_from",
    "conditions_to",
    "iter_conditions",
    "ThresholdRule",
    "PatternRule",
    "RuleSet",
    "FieldDefinition",
    "LayoutNode",
    "SchemaMeta",
    "FormSchema",
]
