"""SSH transport built on asyncssh."""

import asyncio
import json
import logging
import posixpath
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

import asyncssh

from bolt_server.errors import (
    AuthenticationError,
    ConnectError,
    ConnectTimeout,
    HostKeyError,
    ProtocolError,
    RemoteError,
    UploadError,
)
from bolt_server.models import CommandResult, SSHOptions
from bolt_server.models.command import decode_output
from bolt_server.transports.base import (
    Session,
    Transport,
    task_environment,
    task_input_method,
    task_parameters,
)
from bolt_server.utils.shell import quote_arg, quote_path

if TYPE_CHECKING:
    from bolt_server.models import RunCommand, RunScript, RunTask, Target, UploadFile
    from bolt_server.services.file_cache import FileCache

logger = logging.getLogger(__name__)


class SSHSession(Session):
    """An authenticated asyncssh connection to one target."""

    def __init__(
        self,
        target: "Target",
        file_cache: "FileCache",
        conn: asyncssh.SSHClientConnection,
    ) -> None:
        super().__init__(target, file_cache)
        self.conn = conn

    @property
    def options(self) -> SSHOptions:
        assert isinstance(self.target.options, SSHOptions)
        return self.target.options

    async def _run(self, command: str, stdin: str | None = None) -> CommandResult:
        logger.debug("Running on %s: %s", self.target.name, command)
        try:
            result = await self.conn.run(command, input=stdin, check=False)
        except (asyncssh.Error, OSError) as e:
            raise RemoteError(f"SSH command failed on {self.target.name}: {e}") from e
        exit_code = result.returncode if result.returncode is not None else -1
        return CommandResult(
            stdout=decode_output(result.stdout),
            stderr=decode_output(result.stderr),
            exit_code=exit_code,
        )

    async def _make_tmpdir(self) -> str:
        path = posixpath.join(self.options.tmpdir, f"bolt-{uuid.uuid4().hex}")
        result = await self._run(f"mkdir -m 700 {quote_path(path)}")
        if not result.ok:
            raise RemoteError(
                f"Could not make tempdir {path} on {self.target.name}: "
                f"{result.stderr.strip()}"
            )
        return path

    async def _remove(self, path: str) -> None:
        try:
            result = await self._run(f"rm -rf {quote_path(path)}")
        except RemoteError as e:
            logger.warning("Failed to clean up %s on %s: %s", path, self.target.name, e)
            return
        if not result.ok:
            logger.warning(
                "Failed to clean up %s on %s: %s",
                path,
                self.target.name,
                result.stderr.strip(),
            )

    async def _put(
        self, files: list[tuple[Path, str]], dirs: tuple[str, ...] = ()
    ) -> None:
        try:
            async with self.conn.start_sftp_client() as sftp:
                for remote_dir in dirs:
                    await sftp.makedirs(remote_dir, exist_ok=True)
                for local, remote in files:
                    await sftp.put(str(local), remote)
        except (asyncssh.Error, OSError) as e:
            raise UploadError(
                f"Failed to upload to {self.target.name}: {e}",
                details={"files": [remote for _, remote in files]},
            ) from e

    async def _upload_executable(self, local: Path, tmpdir: str, filename: str) -> str:
        remote = posixpath.join(tmpdir, Path(filename).name)
        await self._put([(local, remote)])
        result = await self._run(f"chmod u+x {quote_path(remote)}")
        if not result.ok:
            raise RemoteError(
                f"Could not make {remote} executable: {result.stderr.strip()}"
            )
        return remote

    async def run_task(self, work: "RunTask") -> CommandResult:
        executable = work.task.select_implementation("shell")
        local = await self.file_cache.get(executable)
        method = task_input_method(work.task.metadata, executable.filename, "both")
        params = task_parameters(work.task.name, work.parameters)

        tmpdir = await self._make_tmpdir()
        try:
            remote = await self._upload_executable(local, tmpdir, executable.filename)
            command = quote_path(remote)
            stdin = None
            if method in ("environment", "both", "powershell"):
                env = task_environment(params)
                assignments = " ".join(f"{k}={quote_arg(v)}" for k, v in env.items())
                command = f"env {assignments} {command}"
            if method in ("stdin", "both", "powershell"):
                stdin = json.dumps(params)
            logger.info(
                "Running task %s on %s (input_method=%s)",
                work.task.name,
                self.target.name,
                method,
            )
            return await self._run(command, stdin=stdin)
        finally:
            await self._remove(tmpdir)

    async def run_command(self, work: "RunCommand") -> CommandResult:
        logger.info("Running command on %s", self.target.name)
        return await self._run(work.command)

    async def run_script(self, work: "RunScript") -> CommandResult:
        local = await self.file_cache.get(work.script)
        tmpdir = await self._make_tmpdir()
        try:
            remote = await self._upload_executable(local, tmpdir, work.script.filename)
            command = " ".join([quote_path(remote), *(quote_arg(a) for a in work.arguments)])
            logger.info("Running script %s on %s", work.script.filename, self.target.name)
            return await self._run(command)
        finally:
            await self._remove(tmpdir)

    async def upload_file(self, work: "UploadFile") -> None:
        if work.is_single_file:
            entry = work.entries[0]
            assert entry.file is not None
            local = await self.file_cache.get(entry.file)
            await self._put([(local, work.destination)])
            return

        dirs = [work.destination]
        files: list[tuple[Path, str]] = []
        for entry in sorted(work.entries, key=lambda e: e.relative_path):
            remote = posixpath.join(work.destination, entry.relative_path)
            if entry.kind == "directory":
                dirs.append(remote)
            else:
                assert entry.file is not None
                dirs.append(posixpath.dirname(remote))
                files.append((await self.file_cache.get(entry.file), remote))
        await self._put(files, dirs=tuple(dict.fromkeys(dirs)))

    async def close(self) -> None:
        self.conn.close()
        try:
            await self.conn.wait_closed()
        except (asyncssh.Error, OSError) as e:
            logger.debug("Error while closing connection to %s: %s", self.target.name, e)
        logger.debug("Closed SSH connection to %s", self.target.name)


class SSHTransport(Transport):
    """Opens asyncssh sessions with password or private key auth."""

    name = "ssh"

    def __init__(self, known_hosts: str | None = None) -> None:
        """Initialize transport.

        Args:
            known_hosts: known_hosts file used when a target enables
                host-key-check; None falls back to the asyncssh default
        """
        self.known_hosts = known_hosts

    def connect_options(self, target: "Target") -> dict[str, Any]:
        """Build asyncssh.connect keyword arguments for a target.

        Raises:
            AuthenticationError: If the private key cannot be imported
        """
        assert isinstance(target.options, SSHOptions)
        options: dict[str, Any] = {
            "port": target.port,
            "username": target.user,
            "connect_timeout": target.options.connect_timeout,
            "config": None,
            "agent_path": None,
        }

        if target.options.host_key_check:
            options["known_hosts"] = self.known_hosts if self.known_hosts else ()
        else:
            options["known_hosts"] = None

        if target.private_key is not None:
            try:
                key = asyncssh.import_private_key(target.private_key)
            except asyncssh.KeyImportError as e:
                raise AuthenticationError(
                    target.hostname,
                    f"Failed to import private key for {target.hostname}: {e}",
                ) from e
            options["client_keys"] = [key]
        else:
            options["client_keys"] = None
            options["password"] = target.password

        return options

    async def connect(self, target: "Target", file_cache: "FileCache") -> SSHSession:
        options = self.connect_options(target)
        host = target.hostname
        logger.info(
            "Opening SSH connection to %s (%s@%s:%d, host_key_check=%s)",
            host,
            target.user,
            host,
            target.port,
            options["known_hosts"] is not None,
        )

        try:
            conn = await asyncssh.connect(host, **options)
        except asyncssh.HostKeyNotVerifiable as e:
            raise HostKeyError(
                host, f"Host key verification failed for {host}: {e.reason}"
            ) from e
        except asyncssh.PermissionDenied as e:
            raise AuthenticationError(
                host, f"Authentication failed for {target.user}@{host}: {e.reason}"
            ) from e
        except asyncssh.Error as e:
            raise ProtocolError(host, f"SSH error connecting to {host}: {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise ConnectTimeout(
                host,
                f"Timed out connecting to {host} after "
                f"{options['connect_timeout']} seconds",
            ) from e
        except OSError as e:
            raise ConnectError(host, f"Failed to connect to {host}: {e}") from e

        logger.info("SSH connection established to %s", host)
        return SSHSession(target, file_cache, conn)
