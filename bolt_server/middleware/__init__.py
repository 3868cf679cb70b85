"""HTTP middleware components."""

from bolt_server.middleware.auth import APIKeyMiddleware
from bolt_server.middleware.base import RequestMiddleware, ServerMiddleware
from bolt_server.middleware.errors import ErrorHandlingMiddleware
from bolt_server.middleware.http_adapter import HTTPMiddlewareAdapter
from bolt_server.middleware.logging import LoggingMiddleware
from bolt_server.middleware.ratelimit import (
    RateLimitError,
    RateLimitMiddleware,
    TokenBucket,
)

__all__ = [
    "APIKeyMiddleware",
    "ErrorHandlingMiddleware",
    "HTTPMiddlewareAdapter",
    "LoggingMiddleware",
    "RateLimitError",
    "RateLimitMiddleware",
    "RequestMiddleware",
    "ServerMiddleware",
    "TokenBucket",
]
