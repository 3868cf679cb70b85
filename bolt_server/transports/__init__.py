"""Remote execution transports."""

from bolt_server.transports.base import Session, Transport
from bolt_server.transports.registry import (
    ACTIONS,
    ROUTES,
    Route,
    RouteTable,
    TransportRegistry,
)
from bolt_server.transports.ssh import SSHSession, SSHTransport
from bolt_server.transports.winrm import WinRMSession, WinRMTransport


def default_registry(known_hosts: str | None = None) -> TransportRegistry:
    """Registry holding the SSH and WinRM transports."""
    registry = TransportRegistry()
    registry.register(SSHTransport(known_hosts=known_hosts))
    registry.register(WinRMTransport())
    return registry


__all__ = [
    "ACTIONS",
    "ROUTES",
    "Route",
    "RouteTable",
    "SSHSession",
    "SSHTransport",
    "Session",
    "Transport",
    "TransportRegistry",
    "WinRMSession",
    "WinRMTransport",
    "default_registry",
]
