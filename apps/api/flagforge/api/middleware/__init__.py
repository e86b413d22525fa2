"""Middleware package."""

from flagforge.api.middleware.request_id import RequestIdMiddleware, get_request_id
from flagforge.api.middleware.logging import LoggingMiddleware, redact_path

__all__ = [
    "RequestIdMiddleware",
    "get_request_id",
    "LoggingMiddleware",
    "redact_path",
]
