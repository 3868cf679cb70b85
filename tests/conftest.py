"""Shared fixtures for bolt_server tests."""

import asyncio
import logging
from pathlib import Path
from typing import Any

import pytest

from bolt_server.config import Config, Settings
from bolt_server.dependencies import Dependencies
from bolt_server.models import CommandResult, FileRef
from bolt_server.transports import TransportRegistry
from bolt_server.transports.base import Session, Transport


class FakeSession(Session):
    """Session that records deliveries instead of touching the network."""

    def __init__(self, target, file_cache, transport: "FakeTransport") -> None:
        super().__init__(target, file_cache)
        self.transport = transport

    async def _deliver(self, action: str, work: Any) -> CommandResult:
        self.transport.calls.append((action, self.target.name, work))
        error = self.transport.deliver_errors.get(self.target.name)
        if error is not None:
            raise error
        return self.transport.results.get(
            self.target.name, CommandResult(stdout="ok\n", stderr="", exit_code=0)
        )

    async def run_task(self, work):
        return await self._deliver("run_task", work)

    async def run_command(self, work):
        return await self._deliver("run_command", work)

    async def run_script(self, work):
        return await self._deliver("run_script", work)

    async def upload_file(self, work):
        await self._deliver("upload_file", work)

    async def close(self):
        self.transport.closed.append(self.target.name)


class FakeTransport(Transport):
    """Transport whose behavior is configured per hostname."""

    def __init__(self, name: str = "ssh") -> None:
        self.name = name
        self.results: dict[str, CommandResult] = {}
        self.connect_errors: dict[str, BaseException] = {}
        self.deliver_errors: dict[str, BaseException] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.connected: list[str] = []
        self.closed: list[str] = []
        self.active = 0
        self.max_active = 0

    async def connect(self, target, file_cache) -> FakeSession:
        self.connected.append(target.name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(target.name, 0))
        finally:
            self.active -= 1
        error = self.connect_errors.get(target.name)
        if error is not None:
            raise error
        return FakeSession(target, file_cache, self)


@pytest.fixture
def make_transport():
    """Factory for fake transports."""
    return FakeTransport


@pytest.fixture
def fake_ssh() -> FakeTransport:
    return FakeTransport("ssh")


@pytest.fixture
def fake_winrm() -> FakeTransport:
    return FakeTransport("winrm")


@pytest.fixture
def registry(fake_ssh: FakeTransport, fake_winrm: FakeTransport) -> TransportRegistry:
    registry = TransportRegistry()
    registry.register(fake_ssh)
    registry.register(fake_winrm)
    return registry


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        cache_dir=str(tmp_path / "cache"),
        known_hosts=str(tmp_path / "known_hosts"),
        auth_enabled=False,
    )


@pytest.fixture
def deps(settings: Settings, registry: TransportRegistry) -> Dependencies:
    return Dependencies.from_config(Config.from_settings(settings), registry=registry)


@pytest.fixture
def ssh_target() -> dict[str, Any]:
    return {"hostname": "node1.example.com", "user": "root", "password": "secret"}


@pytest.fixture
def winrm_target() -> dict[str, Any]:
    return {"hostname": "win1.example.com", "user": "Administrator", "password": "secret"}


@pytest.fixture
def file_data() -> dict[str, Any]:
    return {
        "filename": "echo.sh",
        "sha256": "a" * 64,
        "uri": {"path": "/puppet/v3/file_content/tasks/sample/echo.sh", "params": {"environment": "production"}},
    }


@pytest.fixture
def task_data(file_data: dict[str, Any]) -> dict[str, Any]:
    return {"name": "sample::echo", "metadata": {}, "files": [file_data]}


@pytest.fixture
def file_ref(file_data: dict[str, Any]) -> FileRef:
    return FileRef.from_data(file_data)


@pytest.fixture(autouse=True)
def propagate_package_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    """Let caplog see bolt_server records after the server configured its handler."""
    monkeypatch.setattr(logging.getLogger("bolt_server"), "propagate", True)
