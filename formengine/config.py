"""Engine configuration options."""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

# camelCase spellings accepted by EngineConfig.from_dict
_CAMEL_CASE_KEYS: Dict[str, str] = {
    "validateDocuments": "validate_documents",
    "checkReferences": "check_references",
    "allowOverlappingSubmits": "allow_overlapping_submits",
    "recordEvents": "record_events",
    "maxHistory": "max_history",
}


@dataclass(frozen=True)
class EngineConfig:
    """Options controlling how a FormStore loads schemas and handles submits.

    Attributes:
        validate_documents: Check schema documents against the document
            structure before building a FormSchema from them
        check_references: Log reference diagnostics (unknown layout fields,
            unreachable fields, unknown condition fields) when a schema is
            loaded into a store
        allow_overlapping_submits: Permit a second ``handle_submit`` while one
            is pending. When False the second call raises
            SubmitInProgressError.
        record_events: Keep an in-memory history of emitted FormEvents
        max_history: Most recent events kept in that history (None keeps
            every event)

    Examples:
        >>> config = EngineConfig.from_dict({"allowOverlappingSubmits": False})
        >>> config.allow_overlapping_submits
        False
        >>> config.validate_documents
        True
    """
    validate_documents: bool = True
    check_references: bool = True
    allow_overlapping_submits: bool = True
    record_events: bool = True
    max_history: Optional[int] = 500

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "validateDocuments": self.validate_documents,
            "checkReferences": self.check_references,
            "allowOverlappingSubmits": self.allow_overlapping_submits,
            "recordEvents": self.record_events,
            "maxHistory": self.max_history,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create EngineConfig from dict.

        Keys may be camelCase or snake_case.

        Raises:
            ValueError: If an unknown option is given
        """
        known = {f.name for f in fields(cls)}
        options: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown engine option '{key}'")
            if name == "max_history":
                options[name] = None if value is None else int(value)
            else:
                options[name] = bool(value)
        return cls(**options)

    def __post_init__(self):
        """Validate the history bound."""
        if self.max_history is not None and self.max_history < 0:
            raise ValueError(f"max_history must be >= 0 or None, got {self.max_history}")


DEFAULT_CONFIG = EngineConfig()


__all__ = [
    "EngineConfig",
    "DEFAULT_CONFIG",
]
