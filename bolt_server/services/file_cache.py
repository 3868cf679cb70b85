"""Checksum-addressed cache of task, script and upload files.

Files are fetched from the file server once and stored under
``<cache_dir>/<sha256>/<filename>``. Concurrent requests for the same
checksum share one download.

Locking Strategy:
- `_meta_lock`: Protects the `_locks` dict structure
- Per-checksum locks: Serialize download and verification of one file.
  Held weakly, so a lock disappears once no request is using it.
"""

import asyncio
import hashlib
import logging
import os
import ssl
import tempfile
import weakref
from pathlib import Path

import httpx

from bolt_server.errors import FileCacheError
from bolt_server.models import FileRef

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


def _ssl_verify(
    verify: str | bool, cert: tuple[str, str] | None
) -> ssl.SSLContext | bool:
    """Build the TLS verification setting for the file server client."""
    if cert is None and not isinstance(verify, str):
        return verify
    if isinstance(verify, str):
        context = ssl.create_default_context(cafile=verify)
    elif verify:
        context = ssl.create_default_context()
    else:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if cert is not None:
        context.load_cert_chain(certfile=cert[0], keyfile=cert[1])
    return context


def sha256_file(path: Path) -> str:
    """Return the hex sha256 digest of a file."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileCache:
    """Local cache of file-server content keyed by sha256."""

    def __init__(
        self,
        cache_dir: Path | str,
        base_url: str | None = None,
        timeout: float = 30.0,
        verify: str | bool = True,
        cert: tuple[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Directory holding cached files
            base_url: File server base URL, or None for cache-only operation
            timeout: HTTP timeout in seconds
            verify: CA bundle path or bool for TLS verification
            cert: Client certificate and key paths
            client: Preconfigured HTTP client (tests)
        """
        self.cache_dir = Path(cache_dir)
        self.base_url = base_url
        self._client = client
        self._client_kwargs = {"timeout": timeout, "verify": _ssl_verify(verify, cert)}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._meta_lock = asyncio.Lock()

        logger.info(
            "FileCache initialized (cache_dir=%s, file_server=%s)",
            self.cache_dir,
            self.base_url or "(none)",
        )

    def _client_for_request(self) -> httpx.AsyncClient:
        if self._client is None:
            if self.base_url is None:
                raise FileCacheError("No file server is configured")
            self._client = httpx.AsyncClient(base_url=self.base_url, **self._client_kwargs)
        return self._client

    async def _get_lock(self, sha256: str) -> asyncio.Lock:
        async with self._meta_lock:
            lock = self._locks.get(sha256)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[sha256] = lock
            return lock

    def path_for(self, ref: FileRef) -> Path:
        """Cache location of a file; the filename is reduced to its basename.

        Raises:
            FileCacheError: If the checksum is not usable as a directory name
        """
        if ref.sha256 in ("", ".", "..") or Path(ref.sha256).name != ref.sha256:
            raise FileCacheError(f"Invalid sha256 for {ref.filename}: {ref.sha256!r}")
        return self.cache_dir / ref.sha256 / Path(ref.filename).name

    async def get(self, ref: FileRef) -> Path:
        """Return a local path holding the file's verified content.

        Args:
            ref: File descriptor from the request

        Returns:
            Path to the cached file

        Raises:
            FileCacheError: If the file cannot be fetched or fails its checksum
        """
        path = self.path_for(ref)
        lock = await self._get_lock(ref.sha256)

        async with lock:
            if path.exists():
                digest = await asyncio.to_thread(sha256_file, path)
                if digest == ref.sha256:
                    logger.debug("Cache hit for %s (%s)", ref.filename, ref.sha256[:12])
                    return path
                logger.warning(
                    "Cached %s does not match its checksum, fetching again",
                    path,
                )

            content = await self._download(ref)
            digest = hashlib.sha256(content).hexdigest()
            if digest != ref.sha256:
                raise FileCacheError(
                    f"Checksum mismatch for {ref.filename}: expected "
                    f"{ref.sha256}, got {digest}",
                    details={"filename": ref.filename, "uri": ref.uri_path},
                )
            await asyncio.to_thread(self._store, path, content)
            logger.info(
                "Cached %s (%d bytes, sha256=%s)",
                ref.filename,
                len(content),
                ref.sha256[:12],
            )
            return path

    async def _download(self, ref: FileRef) -> bytes:
        client = self._client_for_request()
        logger.debug("Fetching %s from file server", ref.uri_path)
        try:
            response = await client.get(ref.uri_path, params=ref.uri_params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FileCacheError(
                f"Failed to download {ref.filename}: file server returned "
                f"{e.response.status_code}",
                details={"filename": ref.filename, "uri": ref.uri_path},
            ) from e
        except httpx.HTTPError as e:
            raise FileCacheError(
                f"Failed to download {ref.filename}: {e}",
                details={"filename": ref.filename, "uri": ref.uri_path},
            ) from e
        return response.content

    @staticmethod
    def _store(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".partial-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
