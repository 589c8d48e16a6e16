"""
Middleware for contract routes.

Provides:
- Request ID injection (X-Request-ID)
- Error envelope standardization
- Sampled request logging
"""

from .request_id import request_id_middleware
from .error_envelope import envelope_for_exception, setup_error_handlers
from .request_logging import request_logging_middleware

__all__ = [
    'request_id_middleware',
    'envelope_for_exception',
    'setup_error_handlers',
    'request_logging_middleware',
]
