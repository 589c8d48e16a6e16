"""
Route factory - binds route contracts and handlers to a runtime.

Usage:
    factory = FlaskRouteFactory(app)

    @factory.route(GET_ARTICLE)
    def get_article(input, h, next):
        article = articles.find(input.path_params["slug"])
        if article is None:
            return h.json({"message": "not found"}, status=404)
        return h.json({"article": article})

Per request the factory:
1. Runs factory middleware (in registration order)
2. Validates the request (all locations, errors aggregated)
3. Calls the handler chain with (ValidatedInput, TypedResponseBuilder, next)
4. Hands the TypedResponse back to the runtime adapter

Validation failures are raised, not returned: the adapter's error channel
turns them into 4xx envelopes.
"""

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ResponseContractViolation, SpecConfigurationError
from .openapi import DocumentInfo, generate
from .registry import RegisteredRoute, RouteRegistry, RouteSpec, SchemaMode, merge_path
from .request import RequestView
from .response import JSON, TypedResponse, TypedResponseBuilder
from .validate import ValidatedInput, validate_request


logger = logging.getLogger('apicontract.factory')

Handler = Callable[[ValidatedInput, TypedResponseBuilder, Callable[[], Any]], Any]
Middleware = Callable[["RouteContext", Callable[[], Any]], Any]


class Runtime(ABC):
    """
    Capability set a runtime adapter provides.

    The core depends only on this interface, never on a concrete framework.
    Errors raised from a callback must reach the runtime's own error
    handling (e.g. Flask error handlers).
    """

    @abstractmethod
    def routing_path(self, template: str) -> str:
        """Translate '/articles/{slug}' into the runtime's rule syntax."""

    @abstractmethod
    def add_route(
        self,
        method: str,
        path: str,
        callback: Callable[[RequestView], Any],
        endpoint: str,
    ) -> None:
        """Wire a callback into the runtime's dispatch table."""


@dataclass
class RouteContext:
    """Per-request state shared by middleware and handlers."""
    request: RequestView
    route: RouteSpec
    state: Dict[str, Any] = field(default_factory=dict)
    input: Optional[ValidatedInput] = None
    h: Optional[TypedResponseBuilder] = None


class RouteFactory:
    """
    Registers routes and dispatches requests for one runtime.

    Args:
        runtime: Adapter to wire routes into; None for a detached factory
            (e.g. one that will be mounted into another)
        registry: Shared RouteRegistry; a new one is created if omitted
        mode: Response payload enforcement mode
        prefix: Path prefix applied to every route registered here
    """

    def __init__(
        self,
        runtime: Optional[Runtime] = None,
        registry: Optional[RouteRegistry] = None,
        mode: SchemaMode = SchemaMode.STRICT,
        prefix: str = "",
    ):
        self.runtime = runtime
        self.registry = registry if registry is not None else RouteRegistry()
        self.mode = mode
        self.prefix = prefix
        self._middlewares: List[Middleware] = []
        self._chains: Dict[Tuple[str, str], Tuple[Middleware, ...]] = {}

    def middleware(self, fn: Middleware) -> Middleware:
        """Add middleware for routes registered after this call."""
        self._middlewares.append(fn)
        return fn

    def register(self, spec: RouteSpec, *handlers: Handler) -> RegisteredRoute:
        """
        Register a route and wire it into the runtime.

        Raises:
            SpecConfigurationError: If the route spec is inconsistent or duplicates
                an existing (method, path)
        """
        return self._register(spec, handlers, tuple(self._middlewares))

    def route(self, spec: RouteSpec) -> Callable[[Handler], Handler]:
        """Decorator form of register()."""
        def decorator(fn: Handler) -> Handler:
            self.register(spec, fn)
            return fn
        return decorator

    def mount(self, prefix: str, sub: "RouteFactory") -> None:
        """
        Re-register a detached factory's routes under a path prefix.

        The parent's middleware runs before the sub factory's own.
        """
        if sub.runtime is not None:
            raise SpecConfigurationError(
                f"Cannot mount a factory that is already bound to a runtime at '{prefix}'")
        for route in sub.registry:
            middlewares = tuple(self._middlewares) + sub._chains.get(route.spec.key, ())
            self._register(route.spec.with_prefix(prefix), route.handlers, middlewares)

    def doc(self, path: str, info: DocumentInfo) -> None:
        """Serve the generated API document at a GET endpoint (not itself documented)."""
        if self.runtime is None:
            raise SpecConfigurationError("doc() needs a factory bound to a runtime")
        full_path = merge_path(self.prefix, path) if self.prefix else path

        def serve(request: RequestView) -> TypedResponse:
            return TypedResponse(200, JSON, self.document(info))

        self.runtime.add_route("GET", self.runtime.routing_path(full_path), serve, endpoint=f"GET {full_path}")

    def document(self, info: DocumentInfo) -> Dict[str, Any]:
        return generate(self.registry, info)

    def _register(self, spec: RouteSpec, handlers, middlewares: Tuple[Middleware, ...]) -> RegisteredRoute:
        if self.prefix:
            spec = spec.with_prefix(self.prefix)
        route = self.registry.add(spec, tuple(handlers))
        self._chains[spec.key] = middlewares

        if self.runtime is not None:
            callback = functools.partial(self.dispatch, route, middlewares=middlewares)
            self.runtime.add_route(
                spec.method, self.runtime.routing_path(spec.path), callback, endpoint=spec.label
            )

        logger.debug(
            f"Registered route {spec.label}",
            extra={"event": "route_registered", "route": spec.label},
        )
        return route

    def dispatch(
        self,
        route: RegisteredRoute,
        request: RequestView,
        middlewares: Optional[Tuple[Middleware, ...]] = None,
    ) -> Any:
        """
        Handle one request for a registered route.

        Returns:
            Whatever the chain produced: normally a TypedResponse, or a
            runtime-native response used as an escape hatch

        Raises:
            ValidationError: If the request fails validation
            ResponseContractViolation: If a handler breaks the response contract
        """
        if middlewares is None:
            middlewares = self._chains.get(route.spec.key, ())
        ctx = RouteContext(request=request, route=route.spec)

        def run_middleware(index: int) -> Any:
            if index < len(middlewares):
                return middlewares[index](ctx, lambda: run_middleware(index + 1))
            return self._handle(ctx, route)

        try:
            result = run_middleware(0)
        except ResponseContractViolation as e:
            logger.error(
                f"Response contract violation in {route.spec.label}: {e.message}",
                extra={
                    "event": "response_contract_violation",
                    "route": route.spec.label,
                    "details": e.details,
                },
            )
            raise

        if result is None:
            raise ResponseContractViolation(
                f"Handler chain for {route.spec.label} produced no response")
        return result

    def _handle(self, ctx: RouteContext, route: RegisteredRoute) -> Any:
        validated = validate_request(route.spec, ctx.request)
        validated.state = ctx.state
        validated.request = ctx.request
        ctx.input = validated
        ctx.h = TypedResponseBuilder(route.spec, self.mode)

        def call_handler(index: int) -> Any:
            if index >= len(route.handlers):
                return None
            return route.handlers[index](validated, ctx.h, lambda: call_handler(index + 1))

        return call_handler(0)
