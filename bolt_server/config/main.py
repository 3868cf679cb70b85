"""Application configuration.

Delegates to specialized components:
- HostKeyVerifier: Manages known_hosts
- Settings: Environment variables
"""

import logging
from dataclasses import dataclass

from bolt_server.config.host_keys import HostKeyVerifier
from bolt_server.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration.

    Aggregates settings from known_hosts and environment.
    """

    settings: Settings
    host_keys: HostKeyVerifier

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment."""
        settings = Settings.from_env()
        host_keys = HostKeyVerifier(known_hosts_path=settings.known_hosts)
        return cls(settings=settings, host_keys=host_keys)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Config":
        return cls(
            settings=settings,
            host_keys=HostKeyVerifier(known_hosts_path=settings.known_hosts),
        )

    @property
    def http_host(self) -> str:
        """HTTP server bind address."""
        return self.settings.http_host

    @property
    def http_port(self) -> int:
        """HTTP server port."""
        return self.settings.http_port

    @property
    def max_concurrency(self) -> int:
        """Maximum number of targets worked on at once."""
        return self.settings.max_concurrency

    @property
    def connect_timeout(self) -> int:
        """Default connect timeout in seconds."""
        return self.settings.connect_timeout

    @property
    def known_hosts_path(self) -> str | None:
        """Path to known_hosts file, or None for the asyncssh default."""
        return self.host_keys.get_known_hosts_path()
