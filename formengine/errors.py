"""Exceptions and diagnostic records for the formengine package.

Validation failures are never raised: they are returned as message strings
keyed by field id. The exceptions here cover the few situations that do
abort an operation:

- InvalidSchemaError: a schema document does not have the expected structure
- SubmitInProgressError: a second submit was issued while one is pending and
  the store is configured to serialize submissions

SchemaIssue is the structured diagnostic shared by both the document checks
and the (non-raising) reference checks in ``formengine.introspection``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from formengine.types import SchemaIssueCode


@dataclass(frozen=True)
class SchemaIssue:
    """A single problem found in a schema.

    Attributes:
        code: Category of the problem
        message: Human-readable description
        field_id: Optional - the field the problem relates to
        path: Optional - dot-notation location inside the schema document
            (e.g., "fields.age.rules.min")

    Examples:
        >>> issue = SchemaIssue(
        ...     code=SchemaIssueCode.UNKNOWN_LAYOUT_FIELD,
        ...     message="Layout references unknown field 'email'",
        ...     field_id="email",
        ... )
        >>> issue.field_id
        'email'
    """
    code: SchemaIssueCode
    message: str
    field_id: Optional[str] = None
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "code": self.code.value if isinstance(self.code, SchemaIssueCode) else self.code,
            "message": self.message,
        }
        if self.field_id is not None:
            result["fieldId"] = self.field_id
        if self.path is not None:
            result["path"] = self.path
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaIssue":
        """Create SchemaIssue from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = SchemaIssueCode(code)
        return cls(
            code=code,
            message=data["message"],
            field_id=data.get("fieldId"),
            path=data.get("path"),
        )


class FormEngineError(Exception):
    """Base class for all exceptions raised by the form engine."""


class InvalidSchemaError(FormEngineError):
    """Raised when a schema document does not match the expected structure.

    Attributes:
        issues: One SchemaIssue per structural violation found
    """

    def __init__(self, issues: List[SchemaIssue], message: Optional[str] = None):
        self.issues = list(issues)
        if message is None:
            summary = "; ".join(issue.message for issue in self.issues[:3])
            more = len(self.issues) - 3
            if more > 0:
                summary += f" (and {more} more)"
            message = f"Invalid form schema: {summary}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "message": str(self),
            "issues": [issue.to_dict() for issue in self.issues],
        }


class SubmitInProgressError(FormEngineError):
    """Raised when a submit is issued while another one is still pending.

    Only raised when the store runs with
    ``EngineConfig(allow_overlapping_submits=False)``.
    """

    def __init__(self, form_id: str):
        self.form_id = form_id
        super().__init__(
            f"Form '{form_id}' is already submitting; wait for the pending "
            f"submit to settle before submitting again."
        )


__all__ = [
    "SchemaIssue",
    "FormEngineError",
    "InvalidSchemaError",
    "SubmitInProgressError",
]
