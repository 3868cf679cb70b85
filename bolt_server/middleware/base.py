"""Base middleware classes for bolt_server."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


class ServerMiddleware(BaseHTTPMiddleware):
    """Base HTTP middleware with common functionality.

    Provides:
        - Configurable logger
        - Common initialization patterns
    """

    def __init__(self, app: ASGIApp, logger: logging.Logger | None = None) -> None:
        """Initialize middleware.

        Args:
            app: The wrapped ASGI app.
            logger: Optional custom logger. Defaults to module logger.
        """
        super().__init__(app)
        self.logger = logger or logging.getLogger(__name__)


class RequestMiddleware(ABC):
    """Base class for request admission checks.

    Checks see a plain context dict (client IP, API key, path) so they do
    not depend on the HTTP framework.
    """

    @abstractmethod
    async def process_request(self, context: dict[str, Any]) -> dict[str, Any]:
        """Check a request before it reaches a route.

        Args:
            context: Request context (client_ip, api_key, method, path)

        Returns:
            Possibly modified context dictionary

        Raises:
            PermissionError: To reject the request
        """
