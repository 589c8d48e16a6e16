"""
Flask runtime - contract routes on a Flask app or Blueprint.

Usage:
    app = Flask(__name__)
    factory = FlaskRouteFactory(app)

    @factory.route(GET_ARTICLE)
    def get_article(input, h, next):
        ...

Contract errors propagate out of the view function, so Flask's error
handlers render them (setup_error_handlers is installed on apps by default).
"""

from typing import Optional, Union

from flask import Blueprint, Flask, current_app, request

from ..config import get_contract_mode, get_docs_path
from ..contracts.factory import RouteFactory, Runtime
from ..contracts.registry import RouteRegistry, SchemaMode
from ..middleware.error_envelope import setup_error_handlers
from .wsgi_adapter import WerkzeugRequestView, render, to_rule


class FlaskRuntime(Runtime):
    """Adds contract routes as Flask URL rules."""

    def __init__(self, target: Union[Flask, Blueprint]):
        self.target = target

    def routing_path(self, template):
        return to_rule(template)

    def add_route(self, method, path, callback, endpoint):
        def view(**path_params):
            result = callback(WerkzeugRequestView(request._get_current_object(), path_params))
            return render(result, current_app.response_class, current_app.json.dumps)

        # Flask reserves "." in endpoint names for blueprints
        name = endpoint.replace(".", "_")
        view.__name__ = name
        self.target.add_url_rule(path, endpoint=name, view_func=view, methods=[method])


class FlaskRouteFactory(RouteFactory):
    """
    RouteFactory bound to a Flask app or Blueprint.

    Args:
        target: Flask app or Blueprint
        registry: Shared RouteRegistry (e.g. one per API document)
        mode: Response enforcement; defaults to CONTRACT_MODE
        prefix: Path prefix for every route registered here
        error_handlers: Install the error envelope on a Flask app
    """

    def __init__(
        self,
        target: Union[Flask, Blueprint],
        registry: Optional[RouteRegistry] = None,
        mode: Optional[SchemaMode] = None,
        prefix: str = "",
        error_handlers: bool = True,
    ):
        super().__init__(
            FlaskRuntime(target),
            registry=registry,
            mode=mode if mode is not None else get_contract_mode(),
            prefix=prefix,
        )
        if error_handlers and isinstance(target, Flask):
            setup_error_handlers(target)

    def serve_docs(self, info, path: Optional[str] = None) -> None:
        """doc() at DOCS_PATH unless a path is given."""
        self.doc(path or get_docs_path(), info)
