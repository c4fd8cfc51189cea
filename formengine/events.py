"""Event system for the formengine package.

This module provides the event record and emitter used for audit logging and
integration hooks. Every mutation of a FormStore emits a typed FormEvent
after the mutation has been applied.

Events are a separate channel from state observers: observers receive a full
``(state, meta)`` snapshot on every change (for re-rendering), while event
listeners receive a small typed record describing what changed (for audit
trails, analytics, or kicking off asynchronous validation).
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from formengine.types import EventType

logger = logging.getLogger(__name__)


def new_event_id() -> str:
    """Generate a unique event identifier."""
    return f"evt_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class FormEvent:
    """A single event in a form's lifetime.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_3f2a...")
        type: Event type from EventType enum
        form_id: Id of the schema of the form the event relates to
        ts: UTC timestamp when the event occurred
        field_id: Optional - the field the event relates to
        payload: Optional event-specific data (e.g., changed value, errors)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=EventType.FIELD_CHANGED,
        ...     form_id="signup",
        ...     ts=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc),
        ...     field_id="email",
        ...     payload={"value": "a@example.com"},
        ... )
        >>> event.to_dict()["type"]
        'field.changed'
    """
    event_id: str
    type: EventType
    form_id: str
    ts: datetime
    field_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize string event types to the enum."""
        if isinstance(self.type, str) and not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType(self.type))

    @classmethod
    def create(
        cls,
        type: EventType,
        form_id: str,
        field_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "FormEvent":
        """Create an event stamped with a fresh id and the current UTC time."""
        return cls(
            event_id=new_event_id(),
            type=type,
            form_id=form_id,
            ts=datetime.now(timezone.utc),
            field_id=field_id,
            payload=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Timestamp is formatted as an ISO 8601 string.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "formId": self.form_id,
            "ts": self.ts.isoformat(),
        }
        if self.field_id is not None:
            result["fieldId"] = self.field_id
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single line of JSON.

        Payload values that are not JSON serializable (e.g., uploaded file
        objects) are written with their ``str()`` form.
        """
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormEvent":
        """Create FormEvent from dictionary.

        Timestamps are parsed as ISO 8601, including the ``Z`` suffix and
        reduced forms such as ``2024-01-15T10:30Z``. Naive timestamps are
        taken to be UTC.
        """
        ts = date_parser.isoparse(data["ts"])
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            form_id=data["formId"],
            ts=ts,
            field_id=data.get("fieldId"),
            payload=data.get("payload"),
        )


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Event listeners are called synchronously when events are emitted.
They should not mutate the form store that emitted the event.
"""


class EventEmitter:
    """Event emitter managing listeners and dispatching events.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (a failing listener is logged and does not affect
      other listeners or the caller)

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.FIELD_CHANGED, lambda e: seen.append(e.field_id))
        >>> emitter.emit(FormEvent.create(EventType.FIELD_CHANGED, "f", field_id="x"))
        >>> seen
        ['x']
    """

    def __init__(self):
        """Initialize event emitter with empty listener registries."""
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types (wildcard subscription)."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from the wildcard subscription. Unknown listeners are ignored."""
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Listeners are called synchronously in registration order:
        1. Type-specific listeners for this event type
        2. Wildcard listeners (subscribed to all events)

        A listener that raises is logged with its traceback; dispatch then
        continues with the next listener.
        """
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener %r failed on %s for form '%s'",
                    listener,
                    event.type.value,
                    event.form_id,
                )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Get count of registered listeners.

        Args:
            event_type: If provided, count listeners for this type only.
                        If None, count all listeners (including wildcard).
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(ls) for ls in self._listeners.values())


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
    "new_event_id",
]
