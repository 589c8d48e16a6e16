"""
Route Registry - single source of truth for route contracts.

Each route has:
- RequestSchemas: what the client sends, per location
  (path_params, query, headers, cookies, body by content type)
- ResponseContract per status: what the handler may send back
- Documentation annotations (summary, tags, ...)

RouteSpecs are frozen. The registry is append-only and refuses duplicate
(method, path) pairs at registration time.

Registration is expected to finish before traffic starts. Reads (dispatch,
document generation) never lock; concurrent registration must be
synchronized by the caller.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import SpecConfigurationError
from .schema import Schema, as_schema


class SchemaMode(Enum):
    """Response contract enforcement mode."""
    WARN = "warn"      # Log payload mismatches, still send
    STRICT = "strict"  # Raise on payload mismatches


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE")

LOCATIONS = ("path_params", "query", "headers", "cookies", "body")

_SEGMENT_RE = re.compile(r"\{([^{}/]+)\}")

StatusKey = Union[int, str]


def path_template_params(path: str) -> List[str]:
    """Named segments of a path template, in order: /a/{x}/b/{y} -> [x, y]."""
    return _SEGMENT_RE.findall(path)


def path_shape(path: str) -> str:
    """Path with segment names erased, so /a/{x} and /a/{y} compare equal."""
    return _SEGMENT_RE.sub("{}", path)


def merge_path(base: str, *paths: str) -> str:
    """
    Merge path prefixes.

    Examples:
        merge_path('/api', '/users') -> '/api/users'
        merge_path('/api/', '/users') -> '/api/users'
        merge_path('/api', '/') -> '/api'
        merge_path('api', 'users') -> '/api/users'
    """
    merged = "/" + base.strip("/") if base.strip("/") else ""
    for sub in paths:
        if sub and sub != "/":
            merged += "/" + sub.strip("/")
    return merged or "/"


def _freeze_schema(value: Any) -> Optional[Schema]:
    return as_schema(value) if value is not None else None


@dataclass(frozen=True)
class RequestBody:
    """Body schemas keyed by media type."""
    content: Mapping[str, Any]
    required: bool = True
    description: str = ""

    def __post_init__(self):
        frozen = {media_type.lower(): as_schema(s) for media_type, s in self.content.items()}
        object.__setattr__(self, "content", MappingProxyType(frozen))

    @property
    def media_types(self) -> Tuple[str, ...]:
        return tuple(self.content)


@dataclass(frozen=True)
class RequestSchemas:
    """Optional schema per request location."""
    path_params: Optional[Any] = None
    query: Optional[Any] = None
    headers: Optional[Any] = None
    cookies: Optional[Any] = None
    body: Optional[RequestBody] = None

    def __post_init__(self):
        for location in ("path_params", "query", "headers", "cookies"):
            object.__setattr__(self, location, _freeze_schema(getattr(self, location)))

    def for_location(self, location: str):
        return getattr(self, location)

    def declared(self) -> Tuple[str, ...]:
        return tuple(loc for loc in LOCATIONS if getattr(self, loc) is not None)


@dataclass(frozen=True)
class ResponseContract:
    """One declared response: description plus schema per content type."""
    description: str
    content: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {media_type.lower(): as_schema(s) for media_type, s in self.content.items()}
        object.__setattr__(self, "content", MappingProxyType(frozen))
        object.__setattr__(
            self, "headers",
            MappingProxyType({name: as_schema(s) for name, s in self.headers.items()}),
        )


@dataclass(frozen=True)
class RouteSpec:
    """Complete contract for one endpoint."""
    method: str
    path: str
    request: RequestSchemas = field(default_factory=RequestSchemas)
    responses: Mapping[StatusKey, ResponseContract] = field(default_factory=dict)
    summary: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    operation_id: Optional[str] = None
    deprecated: bool = False
    security: Tuple[Mapping[str, Any], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "security", tuple(self.security))
        responses = {}
        for status, contract in self.responses.items():
            key = status if status == "default" else int(status)
            responses[key] = contract
        object.__setattr__(self, "responses", MappingProxyType(responses))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.method, self.path)

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"

    def with_prefix(self, prefix: str) -> "RouteSpec":
        return replace(self, path=merge_path(prefix, self.path))

    def check_consistency(self) -> None:
        """
        Raise SpecConfigurationError if the route contradicts itself.

        Checks:
        - method is a known HTTP method
        - path is absolute
        - template segments match the path_params schema keys exactly
        - query, headers and cookies schemas are object schemas
        - response keys are valid status codes
        """
        if self.method not in HTTP_METHODS:
            raise SpecConfigurationError(
                f"Unsupported HTTP method '{self.method}'", route=self.label)
        if not self.path.startswith("/"):
            raise SpecConfigurationError(
                f"Path '{self.path}' must start with '/'", route=self.label)

        segments = path_template_params(self.path)
        if len(set(segments)) != len(segments):
            raise SpecConfigurationError(
                f"Path '{self.path}' repeats a segment name", route=self.label)

        params_schema = self.request.path_params
        if params_schema is None:
            if segments:
                raise SpecConfigurationError(
                    f"Path segments {segments} have no path_params schema",
                    route=self.label,
                )
        else:
            declared = params_schema.field_names()
            if declared is None:
                raise SpecConfigurationError(
                    "path_params schema must be an object schema", route=self.label)
            if set(declared) != set(segments):
                missing = sorted(set(segments) - set(declared))
                extra = sorted(set(declared) - set(segments))
                raise SpecConfigurationError(
                    f"Path template and path_params schema disagree "
                    f"(undeclared segments: {missing}, unused keys: {extra})",
                    route=self.label,
                )

        for location in ("query", "headers", "cookies"):
            schema = getattr(self.request, location)
            if schema is not None and schema.field_names() is None:
                raise SpecConfigurationError(
                    f"{location} schema must be an object schema", route=self.label)

        for status in self.responses:
            if status != "default" and not 100 <= status <= 599:
                raise SpecConfigurationError(
                    f"Invalid response status {status}", route=self.label)


@dataclass(frozen=True)
class RegisteredRoute:
    """A RouteSpec bound to its handler chain."""
    spec: RouteSpec
    handlers: Tuple[Callable, ...]


class RouteRegistry:
    """
    Append-only collection of registered routes, keyed by (method, path).

    One instance per server process, constructed at startup and handed to
    both the factory and the document generator.
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], RegisteredRoute] = {}
        self._shapes: Dict[Tuple[str, str], str] = {}

    def add(self, spec: RouteSpec, handlers: Tuple[Callable, ...]) -> RegisteredRoute:
        """
        Register a route.

        Raises:
            SpecConfigurationError: If the route spec is inconsistent or the
                (method, path) pair is already registered
        """
        spec.check_consistency()
        if not handlers:
            raise SpecConfigurationError("A route needs at least one handler", route=spec.label)

        shape_key = (spec.method, path_shape(spec.path))
        if shape_key in self._shapes:
            raise SpecConfigurationError(
                f"Duplicate route: {spec.label} conflicts with "
                f"{spec.method} {self._shapes[shape_key]}",
                route=spec.label,
            )

        route = RegisteredRoute(spec=spec, handlers=tuple(handlers))
        self._routes[spec.key] = route
        self._shapes[shape_key] = spec.path
        return route

    def get(self, method: str, path: str) -> Optional[RegisteredRoute]:
        return self._routes.get((method.upper(), path))

    def specs(self) -> List[RouteSpec]:
        return [route.spec for route in self._routes.values()]

    def __iter__(self) -> Iterator[RegisteredRoute]:
        return iter(list(self._routes.values()))

    def __len__(self) -> int:
        return len(self._routes)

    def __contains__(self, key) -> bool:
        method, path = key
        return (method.upper(), path) in self._routes
