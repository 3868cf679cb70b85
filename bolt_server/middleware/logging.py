"""Request/response logging with integrated timing."""

import json
import logging
import time
from typing import Any

from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from bolt_server.middleware.base import ServerMiddleware

REDACTED = "[REDACTED]"
SECRET_KEYS = frozenset({"password", "private-key-content"})


def redact(data: Any) -> Any:
    """Copy of decoded JSON with credential values replaced."""
    if isinstance(data, dict):
        return {
            k: REDACTED if k in SECRET_KEYS else redact(v) for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(v) for v in data]
    return data


class LoggingMiddleware(ServerMiddleware):
    """Logs each request with method, path, status and duration.

    Requests slower than ``slow_threshold_ms`` are logged at WARNING with
    a SLOW marker. With ``include_payloads`` the JSON request body is
    logged at DEBUG with credentials redacted.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        include_payloads: bool = False,
        max_payload_length: int = 1000,
        slow_threshold_ms: float = 1000.0,
    ) -> None:
        super().__init__(app, logger=logger)
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length
        self.slow_threshold_ms = slow_threshold_ms

    def _truncate(self, data: Any) -> str:
        try:
            text = json.dumps(data, default=str)
        except (TypeError, ValueError):
            text = str(data)

        if len(text) > self.max_payload_length:
            return text[: self.max_payload_length] + "... [truncated]"
        return text

    def _format_duration(self, duration_ms: float) -> str:
        if duration_ms >= self.slow_threshold_ms:
            return f"{duration_ms:.1f}ms SLOW!"
        return f"{duration_ms:.1f}ms"

    async def _log_payload(self, request: Request) -> None:
        body = await request.body()
        if not body:
            return
        try:
            payload: Any = redact(json.loads(body))
        except ValueError:
            payload = f"<{len(body)} bytes, not JSON>"
        self.logger.debug("    Body: %s", self._truncate(payload))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        method = request.method
        path = request.url.path

        self.logger.info(">>> %s %s", method, path)
        if self.include_payloads:
            await self._log_payload(request)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self.logger.error(
                "!!! %s %s -> %s: %s [%s]",
                method,
                path,
                type(e).__name__,
                str(e),
                self._format_duration(duration_ms),
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        log_level = logging.WARNING if duration_ms >= self.slow_threshold_ms else logging.INFO
        self.logger.log(
            log_level,
            "<<< %s %s -> %d [%s]",
            method,
            path,
            response.status_code,
            self._format_duration(duration_ms),
        )
        return response
