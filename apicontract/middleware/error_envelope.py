"""
Error envelope - standardize all error responses.

Every contract error, HTTP error and unhandled exception renders as:
{
    "error": {
        "code": "VALIDATION_ERROR",
        "message": "2 validation errors",
        "requestId": "uuid",
        "details": {"violations": [...]}
    }
}

envelope_for_exception() is framework-agnostic (the werkzeug adapter uses
it directly); setup_error_handlers() installs it on a Flask app.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ..config import get_request_id_header
from ..contracts.errors import (
    ContractViolation,
    ResponseContractViolation,
    SpecConfigurationError,
    ValidationError,
)


logger = logging.getLogger('apicontract.middleware.error')


# Error codes reference
ERROR_CODES = {
    # Client errors (4xx)
    "BAD_REQUEST": 400,
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "UNSUPPORTED_MEDIA_TYPE": 415,

    # Contract errors
    "VALIDATION_ERROR": 400,
    "RESPONSE_CONTRACT_VIOLATION": 500,
    "SPEC_CONFIGURATION_ERROR": 500,

    # Server errors (5xx)
    "INTERNAL_ERROR": 500,
}


def error_envelope(
    code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the envelope body."""
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "requestId": request_id,
    }
    if details:
        error["details"] = details
    return {"error": error}


def envelope_for_exception(exc: BaseException, request_id: Optional[str] = None) -> Tuple[Dict[str, Any], int]:
    """
    Map an exception to (envelope body, HTTP status).

    A request id carried on a ContractViolation wins over the one passed in.
    """
    if isinstance(exc, ContractViolation):
        request_id = exc.request_id or request_id

    if isinstance(exc, ValidationError):
        code = "VALIDATION_ERROR"
        return error_envelope(code, exc.message, request_id, exc.details), ERROR_CODES[code]

    if isinstance(exc, ResponseContractViolation):
        code = "RESPONSE_CONTRACT_VIOLATION"
        return error_envelope(code, exc.message, request_id, exc.details), ERROR_CODES[code]

    if isinstance(exc, SpecConfigurationError):
        code = "SPEC_CONFIGURATION_ERROR"
        return error_envelope(code, exc.message, request_id, exc.details), ERROR_CODES[code]

    if isinstance(exc, HTTPException):
        # "Not Found" -> "NOT_FOUND"
        code = (exc.name or "Error").upper().replace(' ', '_')
        return error_envelope(code, exc.description, request_id), exc.code or 500

    logger.exception(
        f"Unhandled error: {exc}",
        extra={
            "event": "unhandled_error",
            "request_id": request_id,
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )
    return error_envelope("INTERNAL_ERROR", "An unexpected error occurred", request_id), 500


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - Contract errors (validation, response contract, configuration)
    - HTTP exceptions (400, 404, 405, etc.)
    - Unhandled Python exceptions

    Args:
        app: Flask application instance
    """
    header = get_request_id_header()

    def _render(error):
        body, status = envelope_for_exception(error, request.headers.get(header))
        response = jsonify(body)
        request_id = body["error"]["requestId"]
        if request_id:
            response.headers[header] = request_id
        return response, status

    @app.errorhandler(ContractViolation)
    def handle_contract_error(error):
        """Handle validation and response contract errors."""
        return _render(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        return _render(error)

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        """Handle unhandled Python exceptions."""
        return _render(error)
