"""
Logging middleware for request/response logging.
"""

import re
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

# SDK keys travel in the path; keep only enough to identify the key
_SDK_KEY_PATH = re.compile(r"^(/api/sdk-payload/)([^/]{1,8})[^/]*")


def redact_path(path: str) -> str:
    """Redact the SDK key in a payload path to its first 8 characters."""
    return _SDK_KEY_PATH.sub(r"\1\2***", path)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log request/response details."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()
        path = redact_path(request.url.path)

        logger.info(
            "Request started",
            method=request.method,
            path=path,
            client_ip=request.client.host if request.client else None,
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Request completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        return response
