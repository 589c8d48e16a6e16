"""
Plain werkzeug runtime tests, driven through werkzeug's test Client.
"""

import json

import pytest
from werkzeug.test import Client

from apicontract import (
    DocumentInfo,
    IntegerSchema,
    ObjectSchema,
    RequestBody,
    RequestSchemas,
    ResponseContract,
    RouteFactory,
    RouteSpec,
    SchemaMode,
    StringSchema,
    WerkzeugRouteFactory,
)
from apicontract.adapters.wsgi_adapter import render, to_rule
from apicontract.contracts.response import TypedResponse


def _counter_factory():
    factory = WerkzeugRouteFactory(mode=SchemaMode.STRICT)
    factory.register(
        RouteSpec(
            "GET", "/counters/{id}",
            request=RequestSchemas(path_params=ObjectSchema({"id": IntegerSchema(minimum=1)})),
            responses={200: ResponseContract("Counter", {"application/json": ObjectSchema({"id": IntegerSchema(), "value": IntegerSchema()})})},
        ),
        lambda input, h, next: h.json({"id": input.path_params["id"], "value": 0}),
    )
    factory.register(
        RouteSpec(
            "POST", "/counters",
            request=RequestSchemas(body=RequestBody({"application/json": ObjectSchema({"start": IntegerSchema()})})),
            responses={201: ResponseContract("Created", {"application/json": ObjectSchema({"value": IntegerSchema()})})},
        ),
        lambda input, h, next: h.json({"value": input.body["start"]}, status=201),
    )
    return factory


@pytest.fixture
def wsgi_client():
    return Client(_counter_factory().runtime)


class TestWerkzeugRuntime:

    def test_path_param_coerced(self, wsgi_client):
        response = wsgi_client.get("/counters/7")
        assert response.status_code == 200
        assert json.loads(response.get_data()) == {"id": 7, "value": 0}

    def test_invalid_path_param(self, wsgi_client):
        response = wsgi_client.get("/counters/zero", headers={"X-Request-ID": "req-1"})
        assert response.status_code == 400
        body = json.loads(response.get_data())
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["requestId"] == "req-1"
        assert body["error"]["details"]["violations"][0]["field"] == "path_params.id"
        assert response.headers["X-Request-ID"] == "req-1"

    def test_json_body(self, wsgi_client):
        response = wsgi_client.post("/counters", json={"start": 3})
        assert response.status_code == 201
        assert json.loads(response.get_data()) == {"value": 3}

    def test_not_found(self, wsgi_client):
        response = wsgi_client.get("/nope")
        assert response.status_code == 404
        assert json.loads(response.get_data())["error"]["code"] == "NOT_FOUND"

    def test_docs(self):
        factory = _counter_factory()
        factory.serve_docs(DocumentInfo(title="Counters", version="0.1"), path="/docs")
        response = Client(factory.runtime).get("/docs")
        document = json.loads(response.get_data())
        assert set(document["paths"]) == {"/counters/{id}", "/counters"}

    def test_mounted_sub_factory(self):
        factory = WerkzeugRouteFactory()
        sub = RouteFactory()
        sub.register(
            RouteSpec("GET", "/health", responses={200: ResponseContract("OK", {"text/plain": StringSchema()})}),
            lambda input, h, next: h.text("ok"),
        )
        factory.mount("/internal", sub)
        response = Client(factory.runtime).get("/internal/health")
        assert response.get_data() == b"ok"


class TestRendering:

    def test_to_rule(self):
        assert to_rule("/a/{x}/b/{y}") == "/a/<x>/b/<y>"

    def test_render_json_with_suffix_type(self):
        response = render(TypedResponse(200, "application/problem+json", {"title": "x"}))
        assert response.content_type == "application/problem+json"
        assert json.loads(response.get_data()) == {"title": "x"}

    def test_render_bytes(self):
        response = render(TypedResponse(200, "application/octet-stream", b"\x00\x01"))
        assert response.get_data() == b"\x00\x01"

    def test_render_rejects_unknown(self):
        with pytest.raises(TypeError):
            render({"not": "typed"})
