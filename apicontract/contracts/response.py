"""
Typed response builder.

Handlers build responses only through the statuses and content types their
route declares. Anything else is a ResponseContractViolation: a server-side
authoring mistake, reported separately from client validation errors.

Payloads are checked against the declared schema. In STRICT mode a
mismatch raises; in WARN mode it is logged and the payload is sent as-is.
"""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple, Union

from .errors import ResponseContractViolation
from .registry import ResponseContract, RouteSpec, SchemaMode
from .request import media_type_of
from .schema import ValidationContext


logger = logging.getLogger('apicontract.response')

JSON = "application/json"
TEXT = "text/plain"


@dataclass(frozen=True)
class TypedResponse:
    """A validated {status, content type, payload} tuple, ready for an adapter to send."""
    status: int
    content_type: Optional[str]
    payload: Any
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def with_headers(self, headers: Mapping[str, str]) -> "TypedResponse":
        merged = dict(self.headers)
        merged.update(headers)
        return replace(self, headers=merged)


class TypedResponseBuilder:
    """Builds responses restricted to one route's response contracts."""

    def __init__(self, spec: RouteSpec, mode: SchemaMode = SchemaMode.STRICT):
        self.spec = spec
        self.mode = mode

    @property
    def allowed(self) -> List[Tuple[Union[int, str], Optional[str]]]:
        """Every (status, content type) pair the route declares."""
        pairs = []
        for status, contract in self.spec.responses.items():
            if not contract.content:
                pairs.append((status, None))
            for media_type in contract.content:
                pairs.append((status, media_type))
        return pairs

    def contract_for(self, status: int) -> ResponseContract:
        responses = self.spec.responses
        if status in responses:
            return responses[status]
        if "default" in responses:
            return responses["default"]
        raise ResponseContractViolation(
            f"{self.spec.label} does not declare a {status} response "
            f"(declared: {[s for s in responses]})",
            status=status,
        )

    def build(
        self,
        status: int,
        content_type: Optional[str],
        payload: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> TypedResponse:
        """
        Check a response against the route contract.

        Raises:
            ResponseContractViolation: If the status or content type is
                undeclared, or (STRICT mode) the payload does not match
        """
        contract = self.contract_for(status)
        headers = headers or {}

        if not contract.content:
            if payload is not None:
                raise ResponseContractViolation(
                    f"{self.spec.label} declares no content for status {status}",
                    status=status,
                    content_type=content_type,
                )
            return TypedResponse(status, None, None, headers)

        media_type = media_type_of(content_type)
        schema = contract.content.get(media_type) if media_type else None
        if schema is None:
            raise ResponseContractViolation(
                f"{self.spec.label} does not declare content type '{content_type}' "
                f"for status {status} (declared: {list(contract.content)})",
                status=status,
                content_type=content_type,
            )

        value, errors = schema.check(payload, (), ValidationContext(location="response"))
        if errors:
            if self.mode == SchemaMode.STRICT:
                raise ResponseContractViolation(
                    f"Response payload does not match contract for {self.spec.label} "
                    f"({status} {media_type})",
                    status=status,
                    content_type=content_type,
                    errors=errors,
                )
            logger.warning(
                f"Response contract violation: route={self.spec.label} "
                f"status={status} content_type={media_type} errors={len(errors)}",
                extra={
                    "event": "response_contract_violation",
                    "route": self.spec.label,
                    "status": status,
                    "violations": [e.to_dict() for e in errors],
                },
            )
            return TypedResponse(status, content_type, payload, headers)

        return TypedResponse(status, content_type, schema.dump(value), headers)

    def json(self, data: Any, status: int = 200, headers: Optional[Mapping[str, str]] = None) -> TypedResponse:
        return self.build(status, JSON, data, headers)

    def text(self, data: str, status: int = 200, headers: Optional[Mapping[str, str]] = None) -> TypedResponse:
        return self.build(status, TEXT, data, headers)

    def empty(self, status: int = 204, headers: Optional[Mapping[str, str]] = None) -> TypedResponse:
        return self.build(status, None, None, headers)
