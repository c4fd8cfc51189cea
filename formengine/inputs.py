"""Normalization of raw widget input, dispatched on the renderer tag.

Rendering is not part of the engine, but every widget hands the engine a
raw value (the text of an input box, a checkbox's checked flag, a picked
file). ``normalize_input`` turns that raw value into the value the engine
stores, with one handler per Renderer member and an explicit fallback for
tags outside the enumeration.

    >>> from formengine.schema import FieldDefinition
    >>> normalize_input(FieldDefinition(id="n", label="N", renderer="number"), "42")
    42
    >>> normalize_input(FieldDefinition(id="d", label="D", renderer="date"), "March 5, 2024")
    '2024-03-05'
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from formengine.schema import FieldDefinition
from formengine.types import Renderer

logger = logging.getLogger(__name__)


class _Ignored:
    def __repr__(self) -> str:
        return "IGNORED"


IGNORED: Any = _Ignored()
"""Returned when a raw input must be dropped (the stored value stays as is)."""


def _text(definition: FieldDefinition, raw: Any) -> Any:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)


def _number(definition: FieldDefinition, raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        logger.debug("Field '%s': ignoring non-numeric input %r", definition.id, raw)
        return None


def _flag(definition: FieldDefinition, raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "on", "yes", "1")
    return bool(raw)


def _many(definition: FieldDefinition, raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple, set, frozenset)):
        return list(raw)
    return [raw]


def _choice(definition: FieldDefinition, raw: Any) -> Any:
    return raw


def _date(definition: FieldDefinition, raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    text = str(raw).strip()
    if not text:
        return None
    try:
        return date_parser.parse(text).date().isoformat()
    except (ValueError, OverflowError):
        logger.debug("Field '%s': ignoring unparseable date %r", definition.id, raw)
        return None


def _file(definition: FieldDefinition, raw: Any) -> Any:
    max_size = definition.props.get("maxSize")
    if raw is None or not max_size:
        return raw
    size = raw.get("size") if isinstance(raw, dict) else getattr(raw, "size", None)
    if size is not None and size > max_size:
        logger.info(
            "Field '%s': ignoring file of %s bytes (limit %s)", definition.id, size, max_size
        )
        return IGNORED
    return raw


_HANDLERS: Dict[Renderer, Callable[[FieldDefinition, Any], Any]] = {
    Renderer.TEXT: _text,
    Renderer.TEXTAREA: _text,
    Renderer.SELECT: _choice,
    Renderer.MULTISELECT: _many,
    Renderer.CHECKBOX: _flag,
    Renderer.RADIO: _choice,
    Renderer.SWITCH: _flag,
    Renderer.DATE: _date,
    Renderer.NUMBER: _number,
    Renderer.FILE: _file,
}


def normalize_input(definition: FieldDefinition, raw: Any) -> Any:
    """Convert a raw widget value into the value stored for the field.

    Args:
        definition: The field receiving the input
        raw: The raw value produced by the widget

    Returns:
        The normalized value, or IGNORED when the input must be dropped
        (an oversized file). Tags outside Renderer pass ``raw`` through.
    """
    try:
        renderer = Renderer(definition.renderer)
    except ValueError:
        logger.warning(
            "Field '%s' has unsupported renderer %r; storing input unchanged",
            definition.id,
            definition.renderer,
        )
        return raw
    return _HANDLERS[renderer](definition, raw)


def field_options(definition: FieldDefinition) -> List[Dict[str, Any]]:
    """Choice options of a select/multiselect/radio field.

    Options are read from ``props["data"]`` or ``props["options"]``; bare
    values become ``{"label": str(value), "value": value}``.
    """
    raw_options = definition.props.get("data")
    if raw_options is None:
        raw_options = definition.props.get("options") or []
    options: List[Dict[str, Any]] = []
    for option in raw_options:
        if isinstance(option, dict):
            options.append({"label": option.get("label", str(option.get("value"))), "value": option.get("value")})
        else:
            options.append({"label": str(option), "value": option})
    return options


__all__ = [
    "IGNORED",
    "normalize_input",
    "field_options",
]
