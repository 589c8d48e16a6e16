"""
Request validation pipeline.

Runs the route's schemas against one request in a fixed order:
path_params -> query -> headers -> cookies -> body.

Every declared location is checked even after an earlier one fails; the
resulting ValidationError lists every violation across all locations so
the client can fix everything in one round trip.

Undeclared locations are skipped. Headers and cookies ignore entries the
schema does not declare (clients and proxies always add their own).
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    MALFORMED_BODY,
    MISSING,
    UNSUPPORTED_MEDIA_TYPE,
    FieldError,
    ValidationError,
)
from .registry import LOCATIONS, RequestBody, RouteSpec
from .request import RequestView, media_type_of
from .schema import EXTRA_IGNORE, Schema, ValidationContext


logger = logging.getLogger('apicontract.validate')

IGNORE_EXTRA_LOCATIONS = ("headers", "cookies")

FORM_MEDIA_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class ValidatedInput(Mapping):
    """
    Typed values extracted from a request that passed validation.

    Holds exactly the locations the route declares. Read by key or by
    attribute: ``input["query"]`` or ``input.query``. Asking for a location
    the route did not declare raises KeyError naming the declared ones.
    """

    def __init__(self, values: Dict[str, Any], media_type: Optional[str] = None):
        self._values = dict(values)
        self.media_type = media_type
        # Filled in by the factory: middleware state and the request view
        self.state: Dict[str, Any] = {}
        self.request: Optional[RequestView] = None

    def __getitem__(self, location: str) -> Any:
        if location not in self._values:
            raise KeyError(
                f"Location '{location}' is not declared for this route "
                f"(declared: {list(self._values)})"
            )
        return self._values[location]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in LOCATIONS:
            return self[name]
        raise AttributeError(f"{type(self).__name__} has no attribute '{name}'")

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return f"ValidatedInput({self._values!r})"

    def value(self, location: str, field: str) -> Any:
        """
        Read one field of an object-shaped location.

        Raises:
            KeyError: If the location is undeclared or the field absent
        """
        container = self[location]
        if isinstance(container, Mapping):
            if field not in container:
                raise KeyError(f"Field '{field}' not present in {location}")
            return container[field]
        try:
            return getattr(container, field)
        except AttributeError:
            raise KeyError(f"Field '{field}' not present in {location}")


def validate_request(spec: RouteSpec, request: RequestView) -> ValidatedInput:
    """
    Validate a request against a route spec.

    Returns:
        ValidatedInput holding every declared location

    Raises:
        ValidationError: With every violation found, across all locations
    """
    values, media_type, errors = collect(spec, request)
    if errors:
        logger.debug(
            f"Request validation failed: route={spec.label} errors={len(errors)}",
            extra={
                "event": "request_validation_failed",
                "route": spec.label,
                "violations": [e.to_dict() for e in errors],
            },
        )
        raise ValidationError(errors, route=spec.label)
    return ValidatedInput(values, media_type=media_type)


def collect(spec: RouteSpec, request: RequestView) -> Tuple[Dict[str, Any], Optional[str], List[FieldError]]:
    """Run every location, returning (values, body media type, errors)."""
    values: Dict[str, Any] = {}
    errors: List[FieldError] = []
    media_type = None

    for location in LOCATIONS:
        declared = spec.request.for_location(location)
        if declared is None:
            continue

        if location == "body":
            value, media_type, location_errors = _validate_body(declared, request)
        else:
            value, location_errors = _validate_text_location(location, declared, request)

        errors.extend(location_errors)
        if not location_errors:
            values[location] = value

    return values, media_type, errors


def _raw_location(location: str, schema: Schema, request: RequestView) -> Dict[str, Any]:
    if location == "path_params":
        return dict(request.path_params)
    if location == "query":
        return dict(request.query)
    if location == "cookies":
        # Browsers send cookies the route never declared
        declared = schema.field_names()
        if declared is None:
            return dict(request.cookies)
        return {name: value for name, value in request.cookies.items() if name in declared}

    # Headers match case-insensitively; hand the schema its own spelling
    received = {name.lower(): value for name, value in request.headers.items()}
    declared = schema.field_names()
    if declared is None:
        return received
    raw = {}
    for name in declared:
        if name.lower() in received:
            raw[name] = received[name.lower()]
    return raw


def _validate_text_location(location: str, schema: Schema, request: RequestView) -> Tuple[Any, List[FieldError]]:
    ctx = ValidationContext(
        location=location,
        coerce=True,
        extra=EXTRA_IGNORE if location in IGNORE_EXTRA_LOCATIONS else None,
    )
    return schema.check(_raw_location(location, schema, request), (), ctx)


def match_media_type(body: RequestBody, media_type: Optional[str]) -> Optional[Tuple[str, Schema]]:
    """Find the declared body schema for a media type: exact, then type/*, then */*."""
    if media_type is None:
        return None
    if media_type in body.content:
        return media_type, body.content[media_type]
    wildcard = media_type.split("/", 1)[0] + "/*"
    for candidate in (wildcard, "*/*"):
        if candidate in body.content:
            return candidate, body.content[candidate]
    return None


def _is_json(media_type: str) -> bool:
    return media_type == "application/json" or media_type.endswith("+json")


def _validate_body(body: RequestBody, request: RequestView) -> Tuple[Any, Optional[str], List[FieldError]]:
    media_type = media_type_of(request.content_type)
    raw = request.body or b""
    form = request.form

    if not raw and not form:
        if body.required:
            return None, media_type, [FieldError("body", (), "Request body is required", MISSING)]
        return None, media_type, []

    matched = match_media_type(body, media_type)
    if matched is None:
        expected = ", ".join(body.media_types)
        if media_type is None:
            message = f"Request body has no content type; expected one of: {expected}"
        else:
            message = f"Unsupported content type '{media_type}'; expected one of: {expected}"
        return None, media_type, [FieldError("body", (), message, UNSUPPORTED_MEDIA_TYPE)]

    _, schema = matched
    if _is_json(media_type):
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            return None, media_type, [FieldError("body", (), f"Malformed JSON body: {e}", MALFORMED_BODY)]
        ctx = ValidationContext(location="body", coerce=False)
    elif media_type in FORM_MEDIA_TYPES:
        payload = dict(form)
        ctx = ValidationContext(location="body", coerce=True)
    elif media_type.startswith("text/"):
        try:
            payload = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            return None, media_type, [FieldError("body", (), f"Malformed text body: {e}", MALFORMED_BODY)]
        ctx = ValidationContext(location="body", coerce=True)
    else:
        payload = raw
        ctx = ValidationContext(location="body", coerce=False)

    value, errors = schema.check(payload, (), ctx)
    return value, media_type, errors
