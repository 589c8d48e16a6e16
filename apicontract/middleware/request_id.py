"""
Request ID middleware - X-Request-ID for request correlation.

Provides:
- Request ID from the inbound header, or a generated UUID
- ctx.state["request_id"] for handlers (input.state)
- Response header on every TypedResponse
- The id attached to contract errors, so the error envelope carries it
"""

import uuid
from typing import Optional

from ..config import get_request_id_header
from ..contracts.errors import ContractViolation
from ..contracts.response import TypedResponse


def request_id_middleware(header: Optional[str] = None):
    """
    Build a factory middleware that injects a request id.

    Usage:
        factory.middleware(request_id_middleware())

    Args:
        header: Header name; defaults to REQUEST_ID_HEADER (X-Request-ID)
    """
    header = header or get_request_id_header()

    def inject_request_id(ctx, next):
        # Use existing header if provided, otherwise generate new
        request_id = ctx.request.header(header)
        if not request_id:
            request_id = str(uuid.uuid4())
        ctx.state["request_id"] = request_id

        try:
            response = next()
        except ContractViolation as e:
            if e.request_id is None:
                e.request_id = request_id
            raise

        if isinstance(response, TypedResponse):
            return response.with_headers({header: request_id})
        return response

    return inject_request_id


def get_request_id(state) -> str:
    """
    Request id from a middleware state dict (ctx.state or input.state).

    Returns:
        Request ID string, or generated UUID if the middleware did not run
    """
    return state.get("request_id") or str(uuid.uuid4())
