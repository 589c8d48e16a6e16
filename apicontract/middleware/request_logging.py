"""
Request logging middleware - lightweight usage sampling.

Logs contract routes with sampling and watchlists.
"""

import logging
import os
import random
import time
from typing import List

from ..contracts.errors import ValidationError
from ..contracts.response import TypedResponse


logger = logging.getLogger("apicontract.request")


def _parse_watchlist(raw: str) -> List[str]:
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _should_log(path: str, watchlist: List[str], sample_rate: float) -> bool:
    if watchlist:
        return any(path.startswith(prefix) for prefix in watchlist)
    if sample_rate <= 0:
        return False
    if sample_rate >= 1:
        return True
    return random.random() <= sample_rate


def _status_of(result, error) -> int:
    if error is not None:
        if isinstance(error, ValidationError):
            return 400
        return 500
    if isinstance(result, TypedResponse):
        return result.status
    return getattr(result, "status_code", 200)


def request_logging_middleware():
    """
    Build a factory middleware that logs sampled requests.

    Returns None when logging is disabled; register the result only if set.

    Env vars:
      - REQUEST_LOG_ENABLED (default: true)
      - REQUEST_LOG_SAMPLE_RATE (default: 0.0)
      - REQUEST_LOG_ENDPOINTS (comma-separated path prefixes to always log)
    """
    enabled = os.environ.get("REQUEST_LOG_ENABLED", "true").lower() == "true"
    sample_rate_raw = os.environ.get("REQUEST_LOG_SAMPLE_RATE", "0.0")
    try:
        sample_rate = float(sample_rate_raw)
    except ValueError:
        sample_rate = 0.0
    watchlist = _parse_watchlist(os.environ.get("REQUEST_LOG_ENDPOINTS", ""))

    if not enabled:
        return None

    def log_request(ctx, next):
        start = time.perf_counter()
        result = None
        error = None
        try:
            result = next()
            return result
        except Exception as e:
            error = e
            raise
        finally:
            path = ctx.request.path
            if _should_log(path, watchlist, sample_rate):
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                logger.info(
                    "api_request route=%s path=%s method=%s status=%s duration_ms=%s request_id=%s",
                    ctx.route.label,
                    path,
                    ctx.request.method,
                    _status_of(result, error),
                    duration_ms,
                    ctx.state.get("request_id"),
                )

    return log_request
