"""Tests for API key authentication."""

import hashlib
import logging

import pytest

from bolt_server.middleware.auth import APIKeyMiddleware, _hash_key_for_logging
from bolt_server.middleware.base import RequestMiddleware


class TestAPIKeyCheck:
    def test_is_framework_independent(self) -> None:
        from starlette.middleware.base import BaseHTTPMiddleware

        assert issubclass(APIKeyMiddleware, RequestMiddleware)
        assert not issubclass(APIKeyMiddleware, BaseHTTPMiddleware)

    @pytest.mark.asyncio
    async def test_process_request_validates_key(self) -> None:
        middleware = APIKeyMiddleware(api_keys=["test-key-123", "other-key"])

        context = {"api_key": "other-key", "client_ip": "127.0.0.1"}
        assert await middleware.process_request(context) == context

        with pytest.raises(PermissionError, match="Invalid API key"):
            await middleware.process_request({"api_key": "wrong", "client_ip": "127.0.0.1"})

        with pytest.raises(PermissionError, match="Missing API key"):
            await middleware.process_request({"client_ip": "127.0.0.1"})

    @pytest.mark.asyncio
    async def test_disabled_allows_all(self) -> None:
        middleware = APIKeyMiddleware(api_keys=["test-key-123"], enabled=False)

        context = {"client_ip": "127.0.0.1"}
        assert await middleware.process_request(context) == context

    @pytest.mark.asyncio
    async def test_no_keys_allows_all(self) -> None:
        middleware = APIKeyMiddleware(api_keys=[])

        context = {"client_ip": "127.0.0.1"}
        assert await middleware.process_request(context) == context


class TestAPIKeyLoggingSecurity:
    """API keys must never reach the log in plaintext."""

    @pytest.mark.asyncio
    async def test_invalid_key_logged_as_hash(self, caplog) -> None:
        secret_key = "super-secret-api-key-12345"
        middleware = APIKeyMiddleware(api_keys=["valid-key"])

        with caplog.at_level(logging.WARNING):
            with pytest.raises(PermissionError):
                await middleware.process_request(
                    {"api_key": secret_key, "client_ip": "203.0.113.42"}
                )

        assert secret_key not in caplog.text
        assert hashlib.sha256(secret_key.encode()).hexdigest()[:8] in caplog.text
        assert "203.0.113.42" in caplog.text

    @pytest.mark.asyncio
    async def test_valid_key_not_logged(self, caplog) -> None:
        valid_key = "my-valid-api-key-99999"
        middleware = APIKeyMiddleware(api_keys=[valid_key])

        with caplog.at_level(logging.DEBUG):
            await middleware.process_request({"api_key": valid_key, "client_ip": "127.0.0.1"})

        assert valid_key not in caplog.text

    def test_hash_is_short_and_deterministic(self) -> None:
        assert len(_hash_key_for_logging("test-key")) == 8
        assert _hash_key_for_logging("k") == _hash_key_for_logging("k")
        assert _hash_key_for_logging("key-one") != _hash_key_for_logging("key-two")
