"""Tests for the dependency container."""

from pathlib import Path

import pytest

from bolt_server.config import Config, Settings
from bolt_server.dependencies import Dependencies
from bolt_server.services import Dispatcher, Executor, RequestValidator
from bolt_server.services.file_cache import FileCache
from bolt_server.transports import SSHTransport, WinRMTransport


def test_from_config_builds_default_transports(tmp_path: Path) -> None:
    known_hosts = tmp_path / "known_hosts"
    known_hosts.touch()
    settings = Settings(cache_dir=str(tmp_path / "cache"), known_hosts=str(known_hosts))

    deps = Dependencies.from_config(Config.from_settings(settings))

    assert sorted(deps.registry.names()) == ["ssh", "winrm"]
    ssh = deps.registry.get("ssh")
    assert isinstance(ssh, SSHTransport)
    assert ssh.known_hosts == str(known_hosts)
    assert isinstance(deps.registry.get("winrm"), WinRMTransport)
    assert len(deps.routes) == 10
    assert isinstance(deps.validator, RequestValidator)
    assert isinstance(deps.executor, Executor)
    assert isinstance(deps.dispatcher, Dispatcher)


def test_services_share_collaborators(deps: Dependencies) -> None:
    assert deps.executor.registry is deps.registry
    assert deps.executor.file_cache is deps.file_cache
    assert deps.dispatcher.executor is deps.executor
    assert deps.dispatcher.max_concurrency == deps.config.max_concurrency


def test_file_cache_from_settings(settings: Settings) -> None:
    settings.file_server_url = "https://puppet:8140"

    deps = Dependencies.from_config(Config.from_settings(settings))

    assert deps.file_cache.base_url == "https://puppet:8140"
    assert deps.file_cache.cache_dir == Path(settings.cache_dir)


def test_custom_file_cache(settings: Settings, registry, tmp_path: Path) -> None:
    cache = FileCache(tmp_path / "other")

    deps = Dependencies.from_config(Config.from_settings(settings), registry=registry, file_cache=cache)

    assert deps.file_cache is cache
    assert deps.executor.file_cache is cache


@pytest.mark.asyncio
async def test_cleanup_closes_file_cache(deps: Dependencies) -> None:
    closed = []

    async def close() -> None:
        closed.append(True)

    deps.file_cache.close = close
    await deps.cleanup()

    assert closed == [True]
