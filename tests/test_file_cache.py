"""Tests for the checksum-addressed file cache."""

import asyncio
import hashlib
from pathlib import Path

import httpx
import pytest

from bolt_server.errors import FileCacheError
from bolt_server.models import FileRef
from bolt_server.services.file_cache import FileCache, sha256_file

CONTENT = b"#!/bin/sh\necho $PT_message\n"
DIGEST = hashlib.sha256(CONTENT).hexdigest()


def _ref(sha256: str = DIGEST, filename: str = "echo.sh") -> FileRef:
    return FileRef(
        filename=filename,
        sha256=sha256,
        uri_path="/puppet/v3/file_content/tasks/sample/echo.sh",
        uri_params={"environment": "production"},
    )


class FileServer:
    """Records requests and serves a fixed response."""

    def __init__(self, status: int = 200, content: bytes = CONTENT) -> None:
        self.status = status
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, content=self.content)


def _cache(tmp_path: Path, server: FileServer) -> FileCache:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(server), base_url="https://puppet:8140"
    )
    return FileCache(tmp_path / "cache", client=client)


@pytest.mark.asyncio
async def test_downloads_and_stores(tmp_path: Path) -> None:
    server = FileServer()
    cache = _cache(tmp_path, server)

    path = await cache.get(_ref())

    assert path == tmp_path / "cache" / DIGEST / "echo.sh"
    assert path.read_bytes() == CONTENT
    request = server.requests[0]
    assert request.url.path == "/puppet/v3/file_content/tasks/sample/echo.sh"
    assert request.url.params["environment"] == "production"
    await cache.close()


@pytest.mark.asyncio
async def test_cache_hit_skips_network(tmp_path: Path) -> None:
    server = FileServer()
    cache = _cache(tmp_path, server)

    await cache.get(_ref())
    await cache.get(_ref())

    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_concurrent_requests_share_download(tmp_path: Path) -> None:
    server = FileServer()
    cache = _cache(tmp_path, server)

    paths = await asyncio.gather(*(cache.get(_ref()) for _ in range(5)))

    assert len(set(paths)) == 1
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_corrupt_cache_entry_refetched(tmp_path: Path) -> None:
    server = FileServer()
    cache = _cache(tmp_path, server)
    stale = tmp_path / "cache" / DIGEST / "echo.sh"
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"garbage")

    path = await cache.get(_ref())

    assert path.read_bytes() == CONTENT
    assert len(server.requests) == 1


@pytest.mark.asyncio
async def test_checksum_mismatch(tmp_path: Path) -> None:
    cache = _cache(tmp_path, FileServer(content=b"something else"))

    with pytest.raises(FileCacheError, match="Checksum mismatch") as exc_info:
        await cache.get(_ref())

    assert exc_info.value.kind == "puppetlabs.tasks/file-error"
    assert not (tmp_path / "cache" / DIGEST / "echo.sh").exists()


@pytest.mark.asyncio
async def test_server_error_status(tmp_path: Path) -> None:
    cache = _cache(tmp_path, FileServer(status=404, content=b"not found"))

    with pytest.raises(FileCacheError, match="returned 404") as exc_info:
        await cache.get(_ref())

    assert exc_info.value.details["filename"] == "echo.sh"


@pytest.mark.asyncio
async def test_transport_failure(tmp_path: Path) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="https://puppet:8140")
    cache = FileCache(tmp_path, client=client)

    with pytest.raises(FileCacheError, match="connection refused"):
        await cache.get(_ref())


@pytest.mark.asyncio
async def test_no_file_server_configured(tmp_path: Path) -> None:
    cache = FileCache(tmp_path)

    with pytest.raises(FileCacheError, match="No file server"):
        await cache.get(_ref())


@pytest.mark.parametrize("sha256", ["", "..", "../etc", "a/b"])
def test_path_for_rejects_unsafe_checksums(tmp_path: Path, sha256: str) -> None:
    cache = FileCache(tmp_path)

    with pytest.raises(FileCacheError, match="Invalid sha256"):
        cache.path_for(_ref(sha256=sha256))


def test_path_for_uses_basename(tmp_path: Path) -> None:
    cache = FileCache(tmp_path)

    path = cache.path_for(_ref(filename="../../sample/files/echo.sh"))

    assert path == tmp_path / DIGEST / "echo.sh"


def test_sha256_file(tmp_path: Path) -> None:
    path = tmp_path / "echo.sh"
    path.write_bytes(CONTENT)

    assert sha256_file(path) == DIGEST


@pytest.mark.asyncio
async def test_checksum_locks_released_after_use(tmp_path: Path) -> None:
    server = FileServer()
    cache = _cache(tmp_path, server)

    await asyncio.gather(*(cache.get(_ref()) for _ in range(3)))

    assert len(cache._locks) == 0
