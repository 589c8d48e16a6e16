"""
Runtime adapters.

- FlaskRouteFactory: routes on a Flask app or Blueprint
- WerkzeugRouteFactory: routes as a standalone werkzeug WSGI app
"""

from .flask_adapter import FlaskRouteFactory, FlaskRuntime
from .wsgi_adapter import WerkzeugRequestView, WerkzeugRouteFactory, WerkzeugRuntime

__all__ = [
    'FlaskRouteFactory',
    'FlaskRuntime',
    'WerkzeugRequestView',
    'WerkzeugRouteFactory',
    'WerkzeugRuntime',
]
