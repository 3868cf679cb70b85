"""Error boundary for unexpected exceptions escaping a route."""

import logging
import traceback
from collections import defaultdict
from collections.abc import Callable

from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from bolt_server.middleware.base import ServerMiddleware

ErrorCallback = Callable[[Exception, Request], None]

SERVER_ERROR_KIND = "boltserver/server-error"
SERVER_ERROR_MSG = "500: Unknown error: An unexpected error occurred"


def server_error_body() -> dict[str, str]:
    """Body of every 500 response. Never carries exception detail."""
    return {"msg": SERVER_ERROR_MSG, "kind": SERVER_ERROR_KIND}


class ErrorHandlingMiddleware(ServerMiddleware):
    """Converts unhandled exceptions into a generic 500 response.

    Logs the exception, tracks error statistics by type, and optionally
    calls an error callback for custom handling.

    Example:
        >>> def on_error(exc, request):
        ...     print(f"Error in {request.url.path}: {exc}")
        >>> Middleware(ErrorHandlingMiddleware, error_callback=on_error)
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        include_traceback: bool = False,
        error_callback: ErrorCallback | None = None,
    ) -> None:
        """Initialize error handling middleware.

        Args:
            app: The wrapped ASGI app.
            logger: Optional custom logger.
            include_traceback: Whether to include full traceback in logs.
            error_callback: Optional callback called on each error.
                Receives (exception, request) as arguments.
        """
        super().__init__(app, logger=logger)
        self.include_traceback = include_traceback
        self.error_callback = error_callback
        self._error_counts: dict[str, int] = defaultdict(int)

    def get_error_stats(self) -> dict[str, int]:
        """Get error statistics by exception type."""
        return dict(self._error_counts)

    def reset_stats(self) -> None:
        self._error_counts.clear()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            error_type = type(e).__name__
            self._error_counts[error_type] += 1

            if self.include_traceback:
                self.logger.error(
                    "Error in %s %s: %s: %s\n%s",
                    request.method,
                    request.url.path,
                    error_type,
                    str(e),
                    traceback.format_exc(),
                )
            else:
                self.logger.error(
                    "Error in %s %s: %s: %s",
                    request.method,
                    request.url.path,
                    error_type,
                    str(e),
                )

            if self.error_callback:
                try:
                    self.error_callback(e, request)
                except Exception as callback_error:
                    self.logger.warning("Error callback failed: %s", str(callback_error))

            return JSONResponse(status_code=500, content=server_error_body())
