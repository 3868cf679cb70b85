"""Target data models.

A Target is built from a request body that already passed schema
validation, so construction only normalizes and applies defaults.
"""

from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_CONNECT_TIMEOUT = 10
SSH_DEFAULT_PORT = 22
WINRM_HTTP_PORT = 5985
WINRM_HTTPS_PORT = 5986


@dataclass(frozen=True)
class Password:
    """Password credential."""

    value: str = field(repr=False)


@dataclass(frozen=True)
class PrivateKey:
    """Private key credential (key material, not a path)."""

    content: str = field(repr=False)


Credential = Union[Password, PrivateKey]


@dataclass(frozen=True)
class SSHOptions:
    """SSH specific connection options."""

    host_key_check: bool = False
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    tmpdir: str = "/tmp"


@dataclass(frozen=True)
class WinRMOptions:
    """WinRM specific connection options."""

    ssl: bool = True
    ssl_verify: bool = True
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT


TransportOptions = Union[SSHOptions, WinRMOptions]


@dataclass(frozen=True)
class Target:
    """One remote node plus its connection and credential parameters."""

    transport: str
    hostname: str
    user: str
    port: int
    credential: Credential
    options: TransportOptions

    @property
    def name(self) -> str:
        """Identity reported back in results."""
        return self.hostname

    @property
    def password(self) -> str | None:
        if isinstance(self.credential, Password):
            return self.credential.value
        return None

    @property
    def private_key(self) -> str | None:
        if isinstance(self.credential, PrivateKey):
            return self.credential.content
        return None

    def __str__(self) -> str:
        return f"{self.user}@{self.hostname}:{self.port}"

    @classmethod
    def from_data(
        cls,
        transport: str,
        data: dict[str, Any],
        default_connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
    ) -> "Target":
        """Build a target from a validated request entry.

        WinRM targets always authenticate with their password.

        Args:
            transport: Transport name ("ssh" or "winrm")
            data: Target object from the request body
            default_connect_timeout: Used when connect-timeout is absent

        Returns:
            Immutable Target

        Raises:
            ValueError: If transport is unknown or no credential is present
        """
        credential: Credential
        if "private-key-content" in data and transport != "winrm":
            credential = PrivateKey(data["private-key-content"])
        elif "password" in data:
            credential = Password(data["password"])
        else:
            raise ValueError(f"Target {data.get('hostname')!r} has no credential")

        timeout = int(data.get("connect-timeout", default_connect_timeout))
        options: TransportOptions
        if transport == "ssh":
            options = SSHOptions(
                host_key_check=data.get("host-key-check", False),
                connect_timeout=timeout,
                tmpdir=data.get("tmpdir", "/tmp"),
            )
            default_port = SSH_DEFAULT_PORT
        elif transport == "winrm":
            options = WinRMOptions(
                ssl=data.get("ssl", True),
                ssl_verify=data.get("ssl-verify", True),
                connect_timeout=timeout,
            )
            default_port = WINRM_HTTPS_PORT if options.ssl else WINRM_HTTP_PORT
        else:
            raise ValueError(f"Unknown transport: {transport}")

        return cls(
            transport=transport,
            hostname=data["hostname"],
            user=data["user"],
            port=int(data.get("port", default_port)),
            credential=credential,
            options=options,
        )
