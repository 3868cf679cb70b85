"""Runs RequestMiddleware checks inside the Starlette middleware stack.

Extracts HTTP context (client IP, headers) for the checks and turns their
rejections into 401 or 429 responses.
"""

from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from bolt_server.middleware.base import RequestMiddleware
from bolt_server.middleware.ratelimit import RateLimitError

# Paths that bypass admission checks so monitoring keeps working.
EXEMPT_PATHS = frozenset({"/health"})


class HTTPMiddlewareAdapter(BaseHTTPMiddleware):
    """Adapter running a RequestMiddleware for HTTP requests."""

    def __init__(self, app: ASGIApp, request_middleware: RequestMiddleware) -> None:
        super().__init__(app)
        self.request_middleware = request_middleware

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Build the request context and delegate the check."""
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        context: dict[str, Any] = {
            "client_ip": self._get_client_ip(request),
            "api_key": request.headers.get("X-API-Key"),
            "method": request.method,
            "path": request.url.path,
        }

        try:
            await self.request_middleware.process_request(context)
        except RateLimitError as e:
            return JSONResponse(
                status_code=429,
                content={"error": str(e)},
                headers={"Retry-After": str(int(e.retry_after) + 1)},
            )
        except PermissionError as e:
            return JSONResponse(status_code=401, content={"error": str(e)})

        return await call_next(request)

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, preferring X-Forwarded-For."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"
