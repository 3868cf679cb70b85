"""API key authentication for HTTP requests."""

import hashlib
import logging
import secrets
from typing import Any

from bolt_server.middleware.base import RequestMiddleware

logger = logging.getLogger(__name__)


def _hash_key_for_logging(key: str) -> str:
    """Hash an API key for safe logging.

    Returns first 8 characters of SHA-256 hash.
    This allows identifying failed attempts without exposing the key.
    """
    return hashlib.sha256(key.encode()).hexdigest()[:8]


class APIKeyMiddleware(RequestMiddleware):
    """API key authentication.

    Uses constant-time comparison to prevent timing attacks. With no keys
    configured every request is admitted.
    """

    def __init__(self, api_keys: list[str], enabled: bool = True) -> None:
        """Initialize auth middleware.

        Args:
            api_keys: List of valid API keys
            enabled: Whether to enforce authentication
        """
        self.api_keys = api_keys
        self.enabled = enabled

    async def process_request(self, context: dict[str, Any]) -> dict[str, Any]:
        """Validate the API key from context."""
        if not self.enabled or not self.api_keys:
            return context

        api_key = context.get("api_key")

        if not api_key:
            raise PermissionError("Missing API key")

        if not self._validate_key(api_key):
            logger.warning(
                "Invalid API key attempt (hash: %s) from %s",
                _hash_key_for_logging(api_key),
                context.get("client_ip", "unknown"),
            )
            raise PermissionError("Invalid API key")

        return context

    def _validate_key(self, provided_key: str) -> bool:
        """Validate key using constant-time comparison."""
        valid = False
        for valid_key in self.api_keys:
            if secrets.compare_digest(provided_key.encode(), valid_key.encode()):
                valid = True
        return valid
