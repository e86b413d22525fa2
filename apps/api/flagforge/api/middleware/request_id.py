"""
Request ID middleware for request tracing.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id() -> str:
    """Request id bound for the current request, "" outside one."""
    return structlog.contextvars.get_contextvars().get("request_id", "")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id (the caller's X-Request-ID, or a new one).

    The id is bound into structlog contextvars, so every log line written
    while handling the request carries it, and echoed in the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
