"""bolt_server HTTP application.

Exposes ``POST /{transport}/{action}``. The route is resolved before the
body is read, the body is validated before any target is contacted, and
execution failures come back as per-target outcomes inside a 200.
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import cast

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from bolt_server.dependencies import Dependencies
from bolt_server.errors import RequestValidationError, RouteNotFound
from bolt_server.middleware import (
    APIKeyMiddleware,
    ErrorHandlingMiddleware,
    HTTPMiddlewareAdapter,
    LoggingMiddleware,
    RateLimitMiddleware,
)
from bolt_server.services.validation import parse_body
from bolt_server.utils.console import ColorfulFormatter


def _configure_logging() -> None:
    """Configure colorful logging for the bolt_server package.

    Called at module load time so logging is configured before any
    loggers are used, regardless of how the server is started.
    """
    log_level = os.getenv("BOLT_SERVER_LOG_LEVEL", "INFO").upper()
    use_colors = os.getenv("BOLT_SERVER_LOG_COLORS", "true").lower() != "false"

    if not sys.stderr.isatty():
        use_colors = False

    package_logger = logging.getLogger("bolt_server")
    package_logger.setLevel(getattr(logging, log_level, logging.INFO))

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    for noisy_logger in [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "asyncssh",
        "httpx",
        "httpcore",
        "winrm",
        "urllib3",
        "requests_ntlm",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


_configure_logging()

logger = logging.getLogger(__name__)

NOT_FOUND_KIND = "boltserver/not-found"


async def index(request: Request) -> Response:
    return PlainTextResponse("OK")


async def health(request: Request) -> Response:
    """Liveness probe; bypasses auth and rate limiting."""
    return PlainTextResponse("OK")


async def execute(request: Request) -> Response:
    """Run an action on the request's target or targets.

    Returns the single Outcome for a ``target`` body and the aggregate
    ``{status, result}`` for a ``targets`` body.
    """
    deps: Dependencies = request.app.state.deps
    route = deps.routes.resolve(
        request.path_params["transport"], request.path_params["action"]
    )
    body = parse_body(await request.body())
    execution = deps.validator.validate(route, body)

    result = await deps.dispatcher.dispatch(execution)
    if execution.aggregate:
        return JSONResponse(result.to_data())
    return JSONResponse(result.first().to_data())


async def route_not_found(request: Request, exc: Exception) -> Response:
    error = cast(RouteNotFound, exc)
    logger.info("No route for %s %s", request.method, request.url.path)
    return JSONResponse(error.to_data(), status_code=404)


async def validation_failed(request: Request, exc: Exception) -> Response:
    return JSONResponse(cast(RequestValidationError, exc).to_data(), status_code=400)


async def http_error(request: Request, exc: Exception) -> Response:
    """Render framework errors as JSON; unknown paths and methods are 404."""
    error = cast(HTTPException, exc)
    if error.status_code in (404, 405):
        return JSONResponse(
            RouteNotFound(request.url.path).to_data(), status_code=404
        )
    return JSONResponse(
        {"msg": str(error.detail), "kind": "boltserver/request-error"},
        status_code=error.status_code,
    )


def configure_middleware(deps: Dependencies) -> list[Middleware]:
    """Build the middleware stack, outermost first.

    Order: Logging -> ErrorHandling -> RateLimit -> Auth
    """
    settings = deps.config.settings
    middleware = [
        Middleware(
            LoggingMiddleware,
            include_payloads=settings.log_payloads,
            slow_threshold_ms=float(settings.slow_threshold_ms),
        ),
        Middleware(
            ErrorHandlingMiddleware,
            include_traceback=settings.include_traceback,
        ),
    ]

    if settings.rate_limit_per_minute > 0:
        middleware.append(
            Middleware(
                HTTPMiddlewareAdapter,
                request_middleware=RateLimitMiddleware(
                    per_minute=settings.rate_limit_per_minute,
                    burst=settings.rate_limit_burst,
                ),
            )
        )
        logger.info(
            "Rate limiting enabled (%d/min, burst=%d)",
            settings.rate_limit_per_minute,
            settings.rate_limit_burst,
        )

    if settings.auth_enabled and settings.api_keys:
        middleware.append(
            Middleware(
                HTTPMiddlewareAdapter,
                request_middleware=APIKeyMiddleware(api_keys=settings.api_keys),
            )
        )
        logger.info("API key authentication enabled (%d key(s))", len(settings.api_keys))
    else:
        logger.warning("API key authentication disabled")

    return middleware


def create_app(deps: Dependencies | None = None) -> Starlette:
    """Create the Starlette application.

    Args:
        deps: Prebuilt dependencies, created from the environment if None

    Returns:
        Configured application

    Raises:
        RouteRegistrationError: If the route table is inconsistent
    """
    if deps is None:
        deps = Dependencies.create()

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(
            "bolt_server starting (%d routes, max_concurrency=%d)",
            len(deps.routes),
            deps.config.max_concurrency,
        )
        try:
            yield
        finally:
            logger.info("bolt_server shutting down")
            await deps.cleanup()
            logger.info("bolt_server shutdown complete")

    app = Starlette(
        routes=[
            Route("/", index, methods=["GET"]),
            Route("/health", health, methods=["GET"]),
            Route("/{transport}/{action}", execute, methods=["POST"]),
        ],
        middleware=configure_middleware(deps),
        exception_handlers={
            RouteNotFound: route_not_found,
            RequestValidationError: validation_failed,
            HTTPException: http_error,
        },
        lifespan=lifespan,
    )
    app.state.deps = deps
    return app
