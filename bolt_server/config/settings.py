"""Application settings from environment variables.

Centralized environment variable parsing and validation. Every variable
uses the ``BOLT_SERVER_`` prefix.
"""

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

PREFIX = "BOLT_SERVER_"


@dataclass
class Settings:
    """Application settings from environment.

    Handles parsing, validation, and defaults for all env vars.
    """

    # HTTP
    http_host: str = field(default="0.0.0.0")
    http_port: int = field(default=62658)

    # Execution
    max_concurrency: int = field(default=100)
    connect_timeout: int = field(default=10)
    known_hosts: str | None = field(default=None)

    # File server
    file_server_url: str | None = field(default=None)
    file_server_timeout: int = field(default=30)
    file_server_ca: str | None = field(default=None)
    file_server_cert: str | None = field(default=None)
    file_server_key: str | None = field(default=None)
    cache_dir: str = field(default="/tmp/bolt-server/cache")

    # Security
    api_keys: list[str] = field(default_factory=list)
    auth_enabled: bool = field(default=True)
    rate_limit_per_minute: int = field(default=0)
    rate_limit_burst: int = field(default=10)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)
    log_payloads: bool = field(default=False)
    slow_threshold_ms: int = field(default=1000)
    include_traceback: bool = field(default=False)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables.

        Returns:
            Settings instance with values from environment
        """
        return cls(
            http_host=cls._get_str("HTTP_HOST") or "0.0.0.0",
            http_port=cls._get_int("HTTP_PORT", 62658),
            max_concurrency=cls._get_int("MAX_CONCURRENCY", 100, minimum=1),
            connect_timeout=cls._get_int("CONNECT_TIMEOUT", 10, minimum=1),
            known_hosts=cls._get_str("KNOWN_HOSTS"),
            file_server_url=cls._get_str("FILE_SERVER_URL"),
            file_server_timeout=cls._get_int("FILE_SERVER_TIMEOUT", 30, minimum=1),
            file_server_ca=cls._get_str("FILE_SERVER_CA"),
            file_server_cert=cls._get_str("FILE_SERVER_CERT"),
            file_server_key=cls._get_str("FILE_SERVER_KEY"),
            cache_dir=cls._get_str("CACHE_DIR") or "/tmp/bolt-server/cache",
            api_keys=cls._get_api_keys(),
            auth_enabled=cls._get_bool("AUTH_ENABLED", True),
            rate_limit_per_minute=cls._get_int("RATE_LIMIT_PER_MINUTE", 0),
            rate_limit_burst=cls._get_int("RATE_LIMIT_BURST", 10, minimum=1),
            log_level=(cls._get_str("LOG_LEVEL") or "INFO").upper(),
            log_colors=cls._get_bool("LOG_COLORS", True),
            log_payloads=cls._get_bool("LOG_PAYLOADS", False),
            slow_threshold_ms=cls._get_int("SLOW_THRESHOLD_MS", 1000),
            include_traceback=cls._get_bool("INCLUDE_TRACEBACK", False),
        )

    @staticmethod
    def _get_str(key: str) -> str | None:
        """Get a non-empty string from the environment, or None."""
        value = os.getenv(PREFIX + key, "").strip()
        return value or None

    @staticmethod
    def _get_int(key: str, default: int, minimum: int = 0) -> int:
        """Get integer from environment.

        Args:
            key: Variable name without prefix
            default: Default value if not set or invalid
            minimum: Smallest accepted value

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(PREFIX + key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning(
                "Invalid int for %s%s: %s, using default %d", PREFIX, key, value, default
            )
            return default

        if parsed < minimum:
            logger.warning(
                "%s%s must be >= %d, got %d, using default %d",
                PREFIX,
                key,
                minimum,
                parsed,
                default,
            )
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment."""
        value = os.getenv(PREFIX + key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_api_keys() -> list[str]:
        """Get comma separated API keys (empty if not set)."""
        value = os.getenv(PREFIX + "API_KEYS", "").strip()
        if not value:
            return []
        return [k.strip() for k in value.split(",") if k.strip()]

    @property
    def file_server_client_cert(self) -> tuple[str, str] | None:
        """Client certificate and key for the file server, when both are set."""
        if self.file_server_cert and self.file_server_key:
            return (self.file_server_cert, self.file_server_key)
        return None

    @property
    def file_server_verify(self) -> str | bool:
        return self.file_server_ca or True
