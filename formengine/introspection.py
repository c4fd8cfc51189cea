"""Schema introspection utilities.

Pure helpers that derive information from a schema without touching form
state: default values, the field identifiers a layout references, which
fields depend on which others, and reference diagnostics.

Reference problems (a layout or condition naming a field the schema does not
define) are reported as SchemaIssue records and logged; they never abort.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from formengine.conditions import is_known_operator
from formengine.errors import SchemaIssue
from formengine.schema import FieldDefinition, FormSchema, LayoutNode, iter_conditions
from formengine.types import LayoutKind, SchemaIssueCode

logger = logging.getLogger(__name__)


def default_values(schema: FormSchema) -> Dict[str, Any]:
    """Map every field that declares a default to that default, in field order.

    Examples:
        >>> from formengine.schema import FieldDefinition, FormSchema
        >>> schema = FormSchema(id="f", fields={
        ...     "a": FieldDefinition(id="a", label="A", default_value=1),
        ...     "b": FieldDefinition(id="b", label="B"),
        ... })
        >>> default_values(schema)
        {'a': 1}
    """
    return {
        field_id: definition.default_value
        for field_id, definition in schema.fields.items()
        if definition.has_default
    }


def traverse_layout(layout: Iterable[LayoutNode]) -> Iterator[LayoutNode]:
    """Walk a layout tree depth-first, yielding each parent before its children."""
    for node in layout:
        yield node
        if node.children:
            yield from traverse_layout(node.children)


def find_layout_node(
    layout: Iterable[LayoutNode],
    predicate: Callable[[LayoutNode], bool],
) -> Optional[LayoutNode]:
    """Return the first node (in traversal order) matching ``predicate``, or None."""
    for node in traverse_layout(layout):
        if predicate(node):
            return node
    return None


class LayoutFieldIds:
    """Lazy, restartable view of the field identifiers a layout references.

    Nothing is computed up front; every ``iter()`` starts a fresh depth-first
    traversal, so the view can be consumed any number of times.

    Examples:
        >>> from formengine.schema import LayoutNode
        >>> layout = [LayoutNode(kind="section", children=[
        ...     LayoutNode(kind="field", field_id="name"),
        ...     LayoutNode(kind="field", field_id="email"),
        ... ])]
        >>> ids = field_identifiers(layout)
        >>> list(ids)
        ['name', 'email']
        >>> list(ids)
        ['name', 'email']
    """

    def __init__(self, layout: Iterable[LayoutNode]):
        self._layout = list(layout)

    def __iter__(self) -> Iterator[str]:
        for node in traverse_layout(self._layout):
            if node.kind == LayoutKind.FIELD and node.field_id:
                yield node.field_id

    def __repr__(self) -> str:
        return f"LayoutFieldIds({list(self)!r})"


def field_identifiers(layout: Iterable[LayoutNode]) -> LayoutFieldIds:
    """Field identifiers referenced by a layout tree, in traversal order."""
    return LayoutFieldIds(layout)


def field_depends_on(definition: FieldDefinition, target_field_id: str) -> bool:
    """True if ``target_field_id`` appears in the field's visibility or enablement conditions."""
    for spec in (definition.visible_when, definition.enabled_when):
        if any(c.field == target_field_id for c in iter_conditions(spec)):
            return True
    return False


def dependents_of(schema: FormSchema, field_id: str) -> List[str]:
    """Ids of the fields whose conditions reference ``field_id``, in schema order.

    Recomputed on every call. Cost is O(fields x conditions), which is fine
    for forms of tens of fields.
    """
    return [
        other_id
        for other_id, definition in schema.fields.items()
        if field_depends_on(definition, field_id)
    ]


def check_schema_references(schema: FormSchema) -> List[SchemaIssue]:
    """Find references to fields the schema does not define.

    Reports:
        - layout nodes naming an unknown field
        - fields never placed in the layout (only when a layout is present)
        - conditions naming an unknown field
        - conditions using an operator outside ConditionOperator

    Every issue is logged as a warning. Nothing is raised: the engine treats
    unknown references as "not found" and keeps working.

    Args:
        schema: The schema to check

    Returns:
        The issues found, in discovery order (empty if none)
    """
    issues: List[SchemaIssue] = []
    known = schema.fields

    placed = set()
    for field_id in field_identifiers(schema.layout):
        placed.add(field_id)
        if field_id not in known:
            issues.append(
                SchemaIssue(
                    code=SchemaIssueCode.UNKNOWN_LAYOUT_FIELD,
                    message=f"Layout references unknown field '{field_id}'",
                    field_id=field_id,
                    path="layout",
                )
            )

    if schema.layout:
        for field_id in known:
            if field_id not in placed:
                issues.append(
                    SchemaIssue(
                        code=SchemaIssueCode.UNREACHABLE_FIELD,
                        message=f"Field '{field_id}' is not placed in the layout",
                        field_id=field_id,
                        path=f"fields.{field_id}",
                    )
                )

    for field_id, definition in known.items():
        for key, spec in (("visibleWhen", definition.visible_when), ("enabledWhen", definition.enabled_when)):
            for condition in iter_conditions(spec):
                if condition.field not in known:
                    issues.append(
                        SchemaIssue(
                            code=SchemaIssueCode.UNKNOWN_CONDITION_FIELD,
                            message=(
                                f"Field '{field_id}' {key} references unknown "
                                f"field '{condition.field}'"
                            ),
                            field_id=field_id,
                            path=f"fields.{field_id}.{key}",
                        )
                    )
                if not is_known_operator(condition.operator):
                    issues.append(
                        SchemaIssue(
                            code=SchemaIssueCode.UNKNOWN_OPERATOR,
                            message=(
                                f"Field '{field_id}' {key} uses unknown operator "
                                f"'{condition.operator}'"
                            ),
                            field_id=field_id,
                            path=f"fields.{field_id}.{key}",
                        )
                    )

    for issue in issues:
        logger.warning("Schema '%s': %s", schema.id, issue.message)
    return issues


__all__ = [
    "default_values",
    "traverse_layout",
    "find_layout_node",
    "LayoutFieldIds",
    "field_identifiers",
    "field_depends_on",
    "dependents_of",
    "check_schema_references",
]
