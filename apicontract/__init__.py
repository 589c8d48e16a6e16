"""
apicontract - declarative request validation and typed dispatch.

Routes are declared once as RouteSpecs; the same declaration validates
requests, restricts responses and produces the OpenAPI document.
"""

from .contracts import *  # noqa: F401,F403
from .contracts import __all__ as _contracts_all
from .adapters import FlaskRouteFactory, WerkzeugRouteFactory

__version__ = "0.1.0"

__all__ = list(_contracts_all) + ['FlaskRouteFactory', 'WerkzeugRouteFactory']
