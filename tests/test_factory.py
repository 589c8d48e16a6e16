"""
Route factory tests.

Dispatch is exercised through a recording runtime so the factory can be
tested without a web framework.
"""

import pytest

from apicontract.contracts.errors import ResponseContractViolation, SpecConfigurationError, ValidationError
from apicontract.contracts.factory import RouteFactory, Runtime
from apicontract.contracts.openapi import DocumentInfo
from apicontract.contracts.registry import RequestSchemas, ResponseContract, RouteSpec
from apicontract.contracts.request import SimpleRequest
from apicontract.contracts.response import JSON, TypedResponse
from apicontract.contracts.schema import IntegerSchema, ObjectSchema, StringSchema


class RecordingRuntime(Runtime):
    """Keeps wired routes in a dict keyed by (method, rule)."""

    def __init__(self):
        self.routes = {}

    def routing_path(self, template):
        return template.replace("{", ":").replace("}", "")

    def add_route(self, method, path, callback, endpoint):
        self.routes[(method, path)] = callback

    def call(self, method, rule, request):
        return self.routes[(method, rule)](request)


def _ping_spec(path="/ping", **kwargs):
    return RouteSpec(
        "GET",
        path,
        request=RequestSchemas(query=ObjectSchema({"n": IntegerSchema(default=1)})),
        responses={200: ResponseContract("Pong", {JSON: ObjectSchema({"n": IntegerSchema()})})},
        **kwargs,
    )


def ping(input, h, next):
    return h.json({"n": input.query["n"]})


class TestRegistration:

    def test_register_wires_runtime(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        route = factory.register(_ping_spec(), ping)

        assert ("GET", "/ping") in runtime.routes
        assert factory.registry.get("GET", "/ping") is route

    def test_routing_path_translated(self, routes):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(routes[0], lambda input, h, next: h.json({"articles": []}))
        assert ("GET", "/articles/:slug") in runtime.routes

    def test_route_decorator(self):
        factory = RouteFactory(RecordingRuntime())

        @factory.route(_ping_spec())
        def handler(input, h, next):
            return h.json({"n": 0})

        assert handler.__name__ == "handler"
        assert len(factory.registry) == 1

    def test_duplicate_rejected(self):
        factory = RouteFactory(RecordingRuntime())
        factory.register(_ping_spec(), ping)
        with pytest.raises(SpecConfigurationError):
            factory.register(_ping_spec(), ping)

    def test_prefix(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime, prefix="/api")
        factory.register(_ping_spec(), ping)
        assert ("GET", "/api/ping") in runtime.routes


class TestDispatch:

    def test_validated_input_reaches_handler(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), ping)

        response = runtime.call("GET", "/ping", SimpleRequest(query={"n": "5"}))
        assert response == TypedResponse(200, JSON, {"n": 5})

    def test_validation_error_raised(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), ping)

        with pytest.raises(ValidationError):
            runtime.call("GET", "/ping", SimpleRequest(query={"n": "x"}))

    def test_handler_not_called_on_invalid_request(self):
        calls = []
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), lambda input, h, next: calls.append(input))

        with pytest.raises(ValidationError):
            runtime.call("GET", "/ping", SimpleRequest(query={"n": "x"}))
        assert calls == []

    def test_handler_chain(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)

        def authenticate(input, h, next):
            input.state["user"] = "ann"
            return next()

        def respond(input, h, next):
            return h.json({"n": len(input.state["user"])})

        factory.register(_ping_spec(), authenticate, respond)
        response = runtime.call("GET", "/ping", SimpleRequest())
        assert response.payload == {"n": 3}

    def test_chain_short_circuit(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(
            _ping_spec(),
            lambda input, h, next: h.json({"n": -1}),
            lambda input, h, next: pytest.fail("second handler must not run"),
        )
        assert runtime.call("GET", "/ping", SimpleRequest()).payload == {"n": -1}

    def test_chain_without_response(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), lambda input, h, next: next())

        with pytest.raises(ResponseContractViolation) as exc:
            runtime.call("GET", "/ping", SimpleRequest())
        assert "produced no response" in exc.value.message

    def test_undeclared_status_from_handler(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), lambda input, h, next: h.json({"n": 1}, status=500))

        with pytest.raises(ResponseContractViolation):
            runtime.call("GET", "/ping", SimpleRequest())

    def test_native_response_passes_through(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        sentinel = object()
        factory.register(_ping_spec(), lambda input, h, next: sentinel)
        assert runtime.call("GET", "/ping", SimpleRequest()) is sentinel

    def test_request_available_to_handler(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        seen = []

        def handler(input, h, next):
            seen.append(input.request.path)
            return h.json({"n": 0})

        factory.register(_ping_spec(), handler)
        runtime.call("GET", "/ping", SimpleRequest(path="/ping"))
        assert seen == ["/ping"]


class TestMiddleware:

    def test_runs_before_validation(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        order = []

        @factory.middleware
        def record(ctx, next):
            order.append(("middleware", ctx.input))
            return next()

        factory.register(_ping_spec(), ping)

        with pytest.raises(ValidationError):
            runtime.call("GET", "/ping", SimpleRequest(query={"n": "x"}))
        assert order == [("middleware", None)]

    def test_state_shared_with_handler(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.middleware(lambda ctx, next: (ctx.state.update(tenant="acme"), next())[1])

        def handler(input, h, next):
            return h.json({"n": len(input.state["tenant"])})

        factory.register(_ping_spec(), handler)
        assert runtime.call("GET", "/ping", SimpleRequest()).payload == {"n": 4}

    def test_can_short_circuit(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.middleware(lambda ctx, next: TypedResponse(503, None, None))
        factory.register(_ping_spec(), ping)
        assert runtime.call("GET", "/ping", SimpleRequest()).status == 503

    def test_only_applies_to_later_routes(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), ping)
        factory.middleware(lambda ctx, next: pytest.fail("registered too late"))
        assert runtime.call("GET", "/ping", SimpleRequest()).status == 200

    def test_middleware_order(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        order = []

        def first(ctx, next):
            order.append("first")
            return next()

        def second(ctx, next):
            order.append("second")
            return next()

        factory.middleware(first)
        factory.middleware(second)
        factory.register(_ping_spec(), ping)
        runtime.call("GET", "/ping", SimpleRequest())
        assert order == ["first", "second"]


class TestMount:

    def test_mount_prefixes_sub_routes(self):
        runtime = RecordingRuntime()
        app = RouteFactory(runtime)
        users = RouteFactory()
        users.register(_ping_spec("/users"), ping)

        app.mount("/api/v1", users)

        assert ("GET", "/api/v1/users") in runtime.routes
        assert app.registry.get("GET", "/api/v1/users") is not None

    def test_parent_middleware_runs_first(self):
        runtime = RecordingRuntime()
        app = RouteFactory(runtime)
        sub = RouteFactory()
        order = []

        app.middleware(lambda ctx, next: (order.append("parent"), next())[1])
        sub.middleware(lambda ctx, next: (order.append("sub"), next())[1])
        sub.register(_ping_spec(), ping)
        app.mount("/api", sub)

        runtime.call("GET", "/api/ping", SimpleRequest())
        assert order == ["parent", "sub"]

    def test_cannot_mount_bound_factory(self):
        app = RouteFactory(RecordingRuntime())
        bound = RouteFactory(RecordingRuntime())
        with pytest.raises(SpecConfigurationError):
            app.mount("/x", bound)


class TestDocRoute:

    def test_doc_served_and_not_documented(self):
        runtime = RecordingRuntime()
        factory = RouteFactory(runtime)
        factory.register(_ping_spec(), ping)
        factory.doc("/docs", DocumentInfo(title="Ping", version="1.0"))

        response = runtime.call("GET", "/docs", SimpleRequest(path="/docs"))
        assert response.status == 200
        assert response.content_type == JSON
        assert list(response.payload["paths"]) == ["/ping"]

    def test_doc_needs_runtime(self):
        with pytest.raises(SpecConfigurationError):
            RouteFactory().doc("/docs", DocumentInfo(title="x", version="1"))


class TestDetached:

    def test_dispatch_without_runtime(self):
        factory = RouteFactory()
        route = factory.register(
            RouteSpec("GET", "/echo/{word}",
                      request=RequestSchemas(path_params=ObjectSchema({"word": StringSchema()})),
                      responses={200: ResponseContract("Echo", {"text/plain": StringSchema()})}),
            lambda input, h, next: h.text(input.path_params["word"]),
        )
        response = factory.dispatch(route, SimpleRequest(path_params={"word": "hi"}))
        assert response.payload == "hi"
