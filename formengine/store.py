"""FormStore: the state owner of the formengine package.

This module provides the FormStore class that owns a form's mutable state
(values, errors, touched flags, submission counters) and coordinates the
condition evaluator, the field validator and the event system on every
mutation.

The store is single-writer: it expects one logical thread of control (an
event loop or a UI driver) issuing one mutation at a time. Every mutation
runs to completion, including observer notification, before returning. The
only operation that suspends is ``handle_submit`` while it awaits the
caller's submit callback; other mutations may be issued in the meantime.

Consumers never get a live reference to the state: every accessor and every
observer notification hands out copies.

Usage:
    >>> schema = {
    ...     "id": "signup",
    ...     "meta": {"title": "Sign up"},
    ...     "fields": {
    ...         "age": {
    ...             "label": "Age",
    ...             "renderer": "number",
    ...             "rules": {"required": "Age required",
    ...                       "min": {"value": 18, "message": "Must be 18+"}},
    ...         },
    ...     },
    ... }
    >>> store = FormStore(schema)
    >>> store.set_value("age", 10)
    >>> store.validate_single_field("age")
    False
    >>> store.get_error("age")
    'Must be 18+'
"""

import copy
import inspect
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from formengine.conditions import evaluate_condition, strict_equals
from formengine.config import DEFAULT_CONFIG, EngineConfig
from formengine.errors import SubmitInProgressError
from formengine.events import EventEmitter, FormEvent
from formengine.inputs import IGNORED, normalize_input
from formengine.introspection import check_schema_references, default_values, dependents_of
from formengine.schema import FieldDefinition, FormSchema
from formengine.types import EventType
from formengine.validation import validate_field, validate_form

logger = logging.getLogger(__name__)


def clone(value: Any) -> Any:
    """Copy the JSON structure of a value.

    Dicts, lists and tuples are copied recursively; anything else (strings,
    numbers, opaque objects such as uploaded files) is shared.
    """
    if isinstance(value, dict):
        return {key: clone(item) for key, item in value.items()}
    if isinstance(value, list):
        return [clone(item) for item in value]
    if isinstance(value, tuple):
        return tuple(clone(item) for item in value)
    return value


@dataclass
class FormState:
    """Mutable state of one form.

    Attributes:
        values: Current value per field id
        errors: Active error message per field id (absent = valid or not yet validated)
        touched: Ids of the fields the user has interacted with
        is_submitting: Whether a submit is in flight
        is_validating: Whether a full-form validation is running
        submit_count: Number of submit attempts since the last reset
    """
    values: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    touched: Set[str] = field(default_factory=set)
    is_submitting: bool = False
    is_validating: bool = False
    submit_count: int = 0

    def copy(self) -> "FormState":
        """Return an independent copy of this state."""
        return FormState(
            values=clone(self.values),
            errors=dict(self.errors),
            touched=set(self.touched),
            is_submitting=self.is_submitting,
            is_validating=self.is_validating,
            submit_count=self.submit_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "values": clone(self.values),
            "errors": dict(self.errors),
            "touched": sorted(self.touched),
            "isSubmitting": self.is_submitting,
            "isValidating": self.is_validating,
            "submitCount": self.submit_count,
        }


@dataclass(frozen=True)
class FormMeta:
    """Metadata derived from a form's state. Computed on demand, never stored.

    Attributes:
        is_dirty: Current values differ from the initial snapshot
        is_valid: The error map is empty
        touched_fields: Touched field ids, in schema order
        error_fields: Ids of the fields with an active error
        visible_fields: Ids of the fields whose visibility condition holds
        enabled_fields: Ids of the fields whose enablement condition holds
    """
    is_dirty: bool
    is_valid: bool
    touched_fields: Tuple[str, ...] = ()
    error_fields: Tuple[str, ...] = ()
    visible_fields: Tuple[str, ...] = ()
    enabled_fields: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isDirty": self.is_dirty,
            "isValid": self.is_valid,
            "touchedFields": list(self.touched_fields),
            "errorFields": list(self.error_fields),
            "visibleFields": list(self.visible_fields),
            "enabledFields": list(self.enabled_fields),
        }


StateObserver = Callable[[FormState, FormMeta], None]
"""Observer callback, called with a state copy and its metadata after every mutation."""

SubmitCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]
"""Submit callback, called with the visible field values. May be a coroutine function."""


class Subscription:
    """Handle for a registered state observer.

    ``unsubscribe()`` (or calling the handle itself) stops all future
    notifications to this registration. It is safe to call repeatedly.
    """

    def __init__(self, registry: List["Subscription"], observer: StateObserver):
        self._registry = registry
        self.observer = observer

    @property
    def active(self) -> bool:
        return any(entry is self for entry in self._registry)

    def unsubscribe(self) -> None:
        for index, entry in enumerate(self._registry):
            if entry is self:
                del self._registry[index]
                return

    def __call__(self) -> None:
        self.unsubscribe()


class FormStore:
    """Owner of a form's state.

    Attributes:
        config: Engine options
        events: Emitter of the FormEvents produced by every mutation

    Examples:
        >>> store = FormStore({"id": "f", "fields": {"name": {"label": "Name", "renderer": "text"}}})
        >>> store.set_value("name", "Ada")
        >>> store.get_values()
        {'name': 'Ada'}
        >>> store.get_meta().is_dirty
        True
    """

    def __init__(
        self,
        schema: Union[FormSchema, Dict[str, Any]],
        initial_values: Optional[Mapping[str, Any]] = None,
        config: Optional[EngineConfig] = None,
    ):
        """Create a store and initialize it from the schema.

        Args:
            schema: A FormSchema or a schema document
            initial_values: Optional values overriding the schema defaults
            config: Optional engine options (defaults to DEFAULT_CONFIG)

        Raises:
            InvalidSchemaError: If a schema document has an invalid structure
        """
        self.config = config or DEFAULT_CONFIG
        self.events = EventEmitter()
        self._subscriptions: List[Subscription] = []
        self._history: Deque[FormEvent] = deque(maxlen=self.config.max_history)
        self._schema: FormSchema
        self._initial_values: Dict[str, Any] = {}
        self._state = FormState()
        self.initialize(schema, initial_values)

    # ------------------------------------------------------------------
    # Initialization

    def _load_schema(self, schema: Union[FormSchema, Dict[str, Any]]) -> FormSchema:
        if isinstance(schema, FormSchema):
            loaded = schema
        elif isinstance(schema, dict):
            loaded = FormSchema.from_dict(schema, validate=self.config.validate_documents)
        else:
            raise TypeError(
                f"schema must be a FormSchema or a schema document, got {type(schema).__name__}"
            )
        if self.config.check_references:
            check_schema_references(loaded)
        return loaded

    def initialize(
        self,
        schema: Union[FormSchema, Dict[str, Any]],
        initial_values: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """(Re)initialize the store from a schema.

        The initial snapshot is the schema defaults with ``initial_values``
        shallow-merged on top. It becomes the live values; errors and
        touched flags start empty and counters start at zero.
        """
        self._schema = self._load_schema(schema)
        snapshot = default_values(self._schema)
        if initial_values:
            snapshot.update(initial_values)
        self._initial_values = clone(snapshot)
        self._state = FormState(values=clone(snapshot))
        logger.debug(
            "Initialized form '%s' with %d initial value(s)", self._schema.id, len(snapshot)
        )
        self._emit(EventType.FORM_INITIALIZED, payload={"values": clone(snapshot)})
        self._notify()

    # ------------------------------------------------------------------
    # Subscription

    def subscribe(self, observer: StateObserver) -> Subscription:
        """Register an observer called after every mutation.

        Observers are called synchronously, in registration order, each with
        its own copy of the state. They must not mutate the store from
        inside the notification.

        Returns:
            A Subscription whose ``unsubscribe()`` is idempotent
        """
        subscription = Subscription(self._subscriptions, observer)
        self._subscriptions.append(subscription)
        return subscription

    def _notify(self) -> None:
        if not self._subscriptions:
            return
        meta = self.get_meta()
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.observer(self._state.copy(), meta)
            except Exception:
                logger.exception(
                    "State observer %r failed for form '%s'", subscription.observer, self._schema.id
                )

    def _emit(
        self,
        event_type: EventType,
        field_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = FormEvent.create(event_type, self._schema.id, field_id=field_id, payload=payload)
        if self.config.record_events:
            self._history.append(event)
        self.events.emit(event)

    def get_events(self) -> List[FormEvent]:
        """Recorded events, oldest first (empty when recording is off).

        At most ``config.max_history`` events are kept; older ones are
        discarded as new ones arrive.
        """
        return list(self._history)

    # ------------------------------------------------------------------
    # Read accessors

    def get_state(self) -> FormState:
        return self._state.copy()

    def get_values(self) -> Dict[str, Any]:
        return clone(self._state.values)

    def get_value(self, field_id: str) -> Any:
        return clone(self._state.values.get(field_id))

    def get_initial_values(self) -> Dict[str, Any]:
        return clone(self._initial_values)

    def get_error(self, field_id: str) -> Optional[str]:
        return self._state.errors.get(field_id)

    def get_errors(self) -> Dict[str, str]:
        return dict(self._state.errors)

    def get_display_error(self, field_id: str) -> Optional[str]:
        """The error to show for a field: only once the field is touched."""
        if field_id not in self._state.touched:
            return None
        return self._state.errors.get(field_id)

    def is_touched(self, field_id: str) -> bool:
        return field_id in self._state.touched

    def get_schema(self) -> FormSchema:
        """A copy of the current schema. Edits to it do not reach the store; use ``set_schema``."""
        return copy.deepcopy(self._schema)

    def get_field(self, field_id: str) -> Optional[FieldDefinition]:
        return copy.deepcopy(self._schema.fields.get(field_id))

    def is_field_visible(self, field_id: str) -> bool:
        """Whether the field's visibility condition holds. Unknown fields are not visible."""
        definition = self._schema.fields.get(field_id)
        if definition is None:
            return False
        return evaluate_condition(definition.visible_when, self._state.values)

    def is_field_enabled(self, field_id: str) -> bool:
        """Whether the field's enablement condition holds. Unknown fields are not enabled."""
        definition = self._schema.fields.get(field_id)
        if definition is None:
            return False
        return evaluate_condition(definition.enabled_when, self._state.values)

    def get_visible_fields(self) -> List[str]:
        return [field_id for field_id in self._schema.fields if self.is_field_visible(field_id)]

    def get_enabled_fields(self) -> List[str]:
        return [field_id for field_id in self._schema.fields if self.is_field_enabled(field_id)]

    def is_dirty(self) -> bool:
        """Whether the values differ from the initial snapshot.

        Compares the whole value mapping structurally, so the cost grows with
        the total size of the values.
        """
        return not strict_equals(self._state.values, self._initial_values)

    def _ordered_touched(self) -> Tuple[str, ...]:
        touched = self._state.touched
        in_schema = [field_id for field_id in self._schema.fields if field_id in touched]
        extra = sorted(field_id for field_id in touched if field_id not in self._schema.fields)
        return tuple(in_schema + extra)

    def get_meta(self) -> FormMeta:
        return FormMeta(
            is_dirty=self.is_dirty(),
            is_valid=not self._state.errors,
            touched_fields=self._ordered_touched(),
            error_fields=tuple(self._state.errors),
            visible_fields=tuple(self.get_visible_fields()),
            enabled_fields=tuple(self.get_enabled_fields()),
        )

    # ------------------------------------------------------------------
    # Mutations

    def _warn_unknown(self, field_id: str, operation: str) -> None:
        logger.warning(
            "%s: field '%s' is not defined in form '%s'", operation, field_id, self._schema.id
        )

    def _apply_validation(self, field_id: str) -> bool:
        """Validate one field into the error map without notifying."""
        definition = self._schema.fields[field_id]
        values = clone(self._state.values)
        message = validate_field(definition, values.get(field_id), values)
        if message:
            self._state.errors[field_id] = message
            return False
        self._state.errors.pop(field_id, None)
        return True

    def set_value(self, field_id: str, value: Any) -> None:
        """Write a field value.

        The field's own error is cleared immediately; it is re-derived the
        next time the field is validated. Every touched field whose
        visibility or enablement condition references ``field_id`` is
        re-validated against the new values.
        """
        if field_id not in self._schema.fields:
            self._warn_unknown(field_id, "set_value")
        self._state.values[field_id] = value
        self._state.errors.pop(field_id, None)

        revalidated: List[str] = []
        for dependent_id in dependents_of(self._schema, field_id):
            if dependent_id in self._state.touched:
                self._apply_validation(dependent_id)
                revalidated.append(dependent_id)

        logger.debug("Form '%s': set '%s' (revalidated %s)", self._schema.id, field_id, revalidated)
        self._emit(
            EventType.FIELD_CHANGED,
            field_id=field_id,
            payload={"value": clone(value), "revalidated": revalidated},
        )
        self._notify()

    def set_input(self, field_id: str, raw: Any) -> bool:
        """Normalize raw widget input for the field's renderer, then set it.

        Returns:
            False when the input was dropped (e.g., a file over ``maxSize``),
            True when the value was written
        """
        definition = self._schema.fields.get(field_id)
        value = raw if definition is None else normalize_input(definition, raw)
        if value is IGNORED:
            return False
        self.set_value(field_id, value)
        return True

    def set_values(self, values: Mapping[str, Any]) -> None:
        """Write several values at once and clear every error.

        Meant for programmatic, trusted updates, so nothing is re-validated.
        """
        for field_id, value in values.items():
            self._state.values[field_id] = value
        self._state.errors = {}
        self._emit(EventType.FIELDS_CHANGED, payload={"fields": list(values)})
        self._notify()

    def set_touched(self, field_id: str, touched: bool = True) -> None:
        """Mark (or unmark) a field as interacted with. Does not validate."""
        if touched:
            self._state.touched.add(field_id)
        else:
            self._state.touched.discard(field_id)
        self._emit(EventType.FIELD_TOUCHED, field_id=field_id, payload={"touched": touched})
        self._notify()

    def set_touched_multiple(self, field_ids: Iterable[str]) -> None:
        """Mark several fields as interacted with. Does not validate."""
        field_ids = list(field_ids)
        self._state.touched.update(field_ids)
        self._emit(EventType.FIELD_TOUCHED, payload={"fields": field_ids, "touched": True})
        self._notify()

    def set_error(self, field_id: str, message: Optional[str]) -> None:
        """Set or clear a field's error directly (e.g., from async validation)."""
        if message:
            self._state.errors[field_id] = message
        else:
            self._state.errors.pop(field_id, None)
        self._emit(EventType.FIELD_ERROR_SET, field_id=field_id, payload={"error": message or None})
        self._notify()

    def validate_single_field(self, field_id: str) -> bool:
        """Validate one field against the current values and record the outcome.

        Returns:
            True if the field is valid (unknown fields count as valid)
        """
        if field_id not in self._schema.fields:
            self._warn_unknown(field_id, "validate_single_field")
            return True
        is_valid = self._apply_validation(field_id)
        if is_valid:
            self._emit(EventType.VALIDATION_PASSED, field_id=field_id)
        else:
            self._emit(
                EventType.VALIDATION_FAILED,
                field_id=field_id,
                payload={"error": self._state.errors[field_id]},
            )
        self._notify()
        return is_valid

    def validate_all_fields(self) -> bool:
        """Validate every visible field and replace the error map wholesale.

        Errors held by hidden fields are dropped, since the new map is built
        from scratch over the visible fields only.

        Returns:
            True if every visible field is valid
        """
        self._state.is_validating = True
        self._notify()

        result = validate_form(self._schema, clone(self._state.values))
        self._state.errors = dict(result.errors)
        self._state.is_validating = False

        if result.is_valid:
            self._emit(EventType.VALIDATION_PASSED, payload={"fields": result.validated_fields})
        else:
            self._emit(EventType.VALIDATION_FAILED, payload={"errors": dict(result.errors)})
        self._notify()
        return result.is_valid

    async def handle_submit(self, on_submit: SubmitCallback) -> bool:
        """Validate the form and, if valid, hand the visible values to ``on_submit``.

        Every visible field is marked touched so that its errors show. The
        callback receives only the values of visible fields that hold a
        value; it may be a plain function or a coroutine function.

        Args:
            on_submit: Callback receiving the submittable values

        Returns:
            True if the callback ran to completion, False if validation failed

        Raises:
            SubmitInProgressError: If a submit is pending and overlapping
                submits are disabled
            Exception: Whatever ``on_submit`` raised, after ``is_submitting``
                has been cleared and observers notified
        """
        if self._state.is_submitting:
            if not self.config.allow_overlapping_submits:
                raise SubmitInProgressError(self._schema.id)
            logger.warning(
                "Form '%s': submit issued while a previous submit is still pending",
                self._schema.id,
            )

        self._state.is_submitting = True
        self._state.submit_count += 1
        self._emit(EventType.SUBMIT_STARTED, payload={"submitCount": self._state.submit_count})
        self._notify()

        visible_fields = self.get_visible_fields()
        self._state.touched.update(visible_fields)

        if not self.validate_all_fields():
            self._state.is_submitting = False
            self._emit(EventType.SUBMIT_BLOCKED, payload={"errors": dict(self._state.errors)})
            self._notify()
            return False

        submittable = {
            field_id: clone(self._state.values[field_id])
            for field_id in visible_fields
            if field_id in self._state.values
        }

        try:
            outcome = on_submit(submittable)
            if inspect.isawaitable(outcome):
                await outcome
        # BaseException so a cancelled callback also clears is_submitting
        except BaseException as exc:
            self._state.is_submitting = False
            self._emit(EventType.SUBMIT_FAILED, payload={"error": repr(exc)})
            self._notify()
            raise

        self._state.is_submitting = False
        self._emit(EventType.SUBMIT_SUCCEEDED, payload={"fields": list(submittable)})
        self._notify()
        return True

    def reset(self) -> None:
        """Restore the initial snapshot and clear errors, touched flags and counters."""
        self._state = FormState(values=clone(self._initial_values))
        self._emit(EventType.FORM_RESET)
        self._notify()

    def reset_field(self, field_id: str) -> None:
        """Restore one field's initial value and drop its error and touched flag."""
        if field_id in self._initial_values:
            self._state.values[field_id] = clone(self._initial_values[field_id])
        else:
            self._state.values.pop(field_id, None)
        self._state.errors.pop(field_id, None)
        self._state.touched.discard(field_id)
        self._emit(EventType.FIELD_RESET, field_id=field_id)
        self._notify()

    def set_schema(self, schema: Union[FormSchema, Dict[str, Any]]) -> None:
        """Replace the schema and reset to the new schema's defaults.

        All prior state, including any caller-supplied initial values, is
        discarded.
        """
        previous_id = self._schema.id
        self._schema = self._load_schema(schema)
        self._initial_values = clone(default_values(self._schema))
        self._emit(EventType.SCHEMA_REPLACED, payload={"previousFormId": previous_id})
        self.reset()


def create_form_store(
    schema: Union[FormSchema, Dict[str, Any]],
    initial_values: Optional[Mapping[str, Any]] = None,
    config: Optional[EngineConfig] = None,
) -> FormStore:
    """Create a FormStore for a schema."""
    return FormStore(schema, initial_values=initial_values, config=config)


__all__ = [
    "clone",
    "FormState",
    "FormMeta",
    "StateObserver",
    "SubmitCallback",
    "Subscription",
    "FormStore",
    "create_form_store",
]
