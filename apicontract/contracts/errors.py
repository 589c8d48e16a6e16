"""
Contract error taxonomy.

- SpecConfigurationError: a route spec is inconsistent (startup time)
- ValidationError: a request failed schema checks (client mistake, 4xx)
- ResponseContractViolation: a handler tried to send an undeclared
  response (server authoring mistake, 5xx)

All three share ContractViolation so adapters can render one envelope.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


PathStep = Union[str, int]


# Error codes carried by FieldError.code
MISSING = "missing"
TYPE_MISMATCH = "type_mismatch"
INVALID_VALUE = "invalid_value"
UNDECLARED_FIELD = "undeclared_field"
CONSTRAINT = "constraint"
UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
MALFORMED_BODY = "malformed_body"


@dataclass(frozen=True)
class FieldError:
    """One located violation: where it happened and what went wrong."""
    location: str
    path: Tuple[PathStep, ...]
    message: str
    code: str = INVALID_VALUE

    @property
    def field(self) -> str:
        """Dotted address, e.g. ``body.items[0].name``."""
        rendered = self.location
        for step in self.path:
            if isinstance(step, int):
                rendered += f"[{step}]"
            else:
                rendered += f".{step}"
        return rendered

    def at(self, location: str) -> "FieldError":
        return FieldError(location, self.path, self.message, self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "path": list(self.path),
            "field": self.field,
            "message": self.message,
            "code": self.code,
        }


@dataclass
class ContractViolation(Exception):
    """Base for every error the contract layer raises."""
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None

    def __str__(self):
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "message": self.message,
            "details": self.details,
        }


class SpecConfigurationError(ContractViolation):
    """Raised at registration time for an inconsistent or duplicate route."""

    def __init__(self, message: str, route: Optional[str] = None):
        details = {"route": route} if route else {}
        super().__init__(message=message, details=details)
        self.route = route


class ValidationError(ContractViolation):
    """
    Raised when a request fails validation.

    Always carries every violation found across all request locations,
    never only the first.
    """

    def __init__(self, errors: Sequence[FieldError], route: Optional[str] = None):
        self.errors: List[FieldError] = list(errors)
        self.route = route
        super().__init__(
            message=f"{len(self.errors)} validation error(s)",
            details={"violations": [e.to_dict() for e in self.errors]},
        )

    def by_location(self) -> Dict[str, List[FieldError]]:
        grouped: Dict[str, List[FieldError]] = {}
        for error in self.errors:
            grouped.setdefault(error.location, []).append(error)
        return grouped


class ResponseContractViolation(ContractViolation):
    """
    Raised when handler code builds a response the route does not declare.

    This is a programming error, not a client error.
    """

    def __init__(
        self,
        message: str,
        status: Optional[Union[int, str]] = None,
        content_type: Optional[str] = None,
        errors: Sequence[FieldError] = (),
    ):
        self.status = status
        self.content_type = content_type
        self.errors: List[FieldError] = list(errors)
        details: Dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if content_type is not None:
            details["contentType"] = content_type
        if self.errors:
            details["violations"] = [e.to_dict() for e in self.errors]
        super().__init__(message=message, details=details)
