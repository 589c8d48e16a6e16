"""
Plain werkzeug runtime - contract routes as a standalone WSGI app.

Usage:
    factory = WerkzeugRouteFactory()
    factory.register(GET_ARTICLE, get_article)
    run_simple("localhost", 8000, factory.runtime)

The runtime owns its error channel: every exception is rendered with the
standard error envelope.
"""

import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, RequestRedirect, Rule
from werkzeug.wrappers import Request, Response

from ..config import get_contract_mode, get_docs_path, get_request_id_header
from ..contracts.factory import RouteFactory, Runtime
from ..contracts.registry import RouteRegistry, SchemaMode
from ..contracts.request import RequestView, collapse_multi
from ..contracts.response import TypedResponse
from ..middleware.error_envelope import envelope_for_exception


logger = logging.getLogger('apicontract.adapters.wsgi')


def to_rule(template: str) -> str:
    """'/articles/{slug}' -> '/articles/<slug>'."""
    return template.replace("{", "<").replace("}", ">")


def is_json_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def render(
    result: Any,
    response_class=Response,
    dumps: Callable[[Any], str] = json.dumps,
) -> Response:
    """
    Turn a handler result into a runtime response.

    TypedResponse is serialized by content type; a native response object
    passes through untouched.
    """
    if isinstance(result, Response):
        return result
    if not isinstance(result, TypedResponse):
        raise TypeError(f"Cannot render handler result of type {type(result).__name__}")

    if result.content_type is None:
        response = response_class(status=result.status)
    elif is_json_type(result.content_type):
        response = response_class(dumps(result.payload), status=result.status, content_type=result.content_type)
    elif isinstance(result.payload, (bytes, str)):
        response = response_class(result.payload, status=result.status, content_type=result.content_type)
    else:
        response = response_class(str(result.payload), status=result.status, content_type=result.content_type)

    for name, value in result.headers.items():
        response.headers[name] = value
    return response


class WerkzeugRequestView(RequestView):
    """RequestView over a werkzeug (or Flask) Request."""

    def __init__(self, request: Request, path_params: Optional[Mapping[str, Any]] = None):
        self._request = request
        self._path_params = {k: str(v) for k, v in (path_params or {}).items()}

    @property
    def method(self):
        return self._request.method

    @property
    def path(self):
        return self._request.path

    @property
    def path_params(self):
        return self._path_params

    @property
    def query(self):
        return collapse_multi(self._request.args.to_dict(flat=False))

    @property
    def headers(self):
        return dict(self._request.headers)

    @property
    def cookies(self):
        return dict(self._request.cookies)

    @property
    def body(self):
        return self._request.get_data(cache=True)

    @property
    def form(self):
        fields: Dict[str, Any] = collapse_multi(self._request.form.to_dict(flat=False))
        fields.update(collapse_multi(self._request.files.to_dict(flat=False)))
        return fields

    @property
    def content_type(self):
        return self._request.content_type or None


class WerkzeugRuntime(Runtime):
    """A werkzeug Map plus a WSGI entry point."""

    def __init__(self):
        self.url_map = Map()
        self._callbacks: Dict[str, Callable[[RequestView], Any]] = {}
        self.request_id_header = get_request_id_header()

    def routing_path(self, template):
        return to_rule(template)

    def add_route(self, method, path, callback, endpoint):
        self.url_map.add(Rule(path, endpoint=endpoint, methods=[method]))
        self._callbacks[endpoint] = callback

    def dispatch_request(self, request: Request) -> Response:
        adapter = self.url_map.bind_to_environ(request.environ)
        try:
            endpoint, args = adapter.match()
            return render(self._callbacks[endpoint](WerkzeugRequestView(request, args)))
        except RequestRedirect as e:
            return e.get_response(request.environ)
        except Exception as e:
            return self.error_response(e, request)

    def error_response(self, error: Exception, request: Request) -> Response:
        if not isinstance(error, HTTPException):
            logger.debug(
                f"Rendering {type(error).__name__} for {request.method} {request.path}",
                extra={"event": "error_rendered", "error_type": type(error).__name__},
            )
        body, status = envelope_for_exception(error, request.headers.get(self.request_id_header))
        response = Response(json.dumps(body), status=status, content_type="application/json")
        request_id = body["error"]["requestId"]
        if request_id:
            response.headers[self.request_id_header] = request_id
        return response

    def wsgi_app(self, environ, start_response):
        request = Request(environ)
        response = self.dispatch_request(request)
        return response(environ, start_response)

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)


class WerkzeugRouteFactory(RouteFactory):
    """RouteFactory bound to a fresh WerkzeugRuntime."""

    def __init__(
        self,
        registry: Optional[RouteRegistry] = None,
        mode: Optional[SchemaMode] = None,
        prefix: str = "",
    ):
        super().__init__(
            WerkzeugRuntime(),
            registry=registry,
            mode=mode if mode is not None else get_contract_mode(),
            prefix=prefix,
        )

    def serve_docs(self, info, path: Optional[str] = None) -> None:
        """doc() at DOCS_PATH unless a path is given."""
        self.doc(path or get_docs_path(), info)
