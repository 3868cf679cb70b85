"""Configuration module for bolt_server.

- Config: Main configuration class (aggregates all components)
- HostKeyVerifier: Resolves the SSH known_hosts file
- Settings: Environment variable configuration
"""

from bolt_server.config.host_keys import HostKeyVerifier
from bolt_server.config.main import Config
from bolt_server.config.settings import Settings

__all__ = ["Config", "HostKeyVerifier", "Settings"]
