"""SSH host key verification.

Resolves the known_hosts file used for targets that set
``host-key-check``. Targets that leave it false are never verified.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class HostKeyVerifier:
    """Resolves the known_hosts file for host key checks."""

    def __init__(self, known_hosts_path: str | None = None) -> None:
        """Initialize host key verifier.

        Args:
            known_hosts_path: Path to a known_hosts file, or None for
                ~/.ssh/known_hosts
        """
        self._known_hosts = self._resolve_known_hosts(known_hosts_path)

    def _resolve_known_hosts(self, configured: str | None) -> str | None:
        """Resolve the known_hosts path.

        A missing file is not fatal: targets that request host key checks
        then fail to connect with a host key error.

        Returns:
            Path to the known_hosts file, or None when none exists
        """
        if configured:
            path = Path(os.path.expanduser(configured))
        else:
            path = Path.home() / ".ssh" / "known_hosts"

        if not path.exists():
            logger.warning(
                "known_hosts not found at %s; targets with host-key-check "
                "will fail verification",
                path,
            )
            return str(path) if configured else None

        logger.info("SSH host key verification uses %s", path)
        return str(path)

    def get_known_hosts_path(self) -> str | None:
        """Get path to known_hosts file, or None to use the asyncssh default."""
        return self._known_hosts
