"""WinRM transport built on pywinrm.

pywinrm is synchronous; every protocol call runs in a worker thread so a
slow Windows target never blocks the event loop.
"""

import asyncio
import base64
import json
import logging
import ntpath
from pathlib import Path
from typing import TYPE_CHECKING, Any

import requests
from winrm.exceptions import (
    InvalidCredentialsError,
    WinRMError,
    WinRMOperationTimeoutError,
    WinRMTransportError,
)
from winrm.protocol import Protocol

from bolt_server.errors import (
    AuthenticationError,
    ConnectError,
    ConnectTimeout,
    HostKeyError,
    ProtocolError,
    RemoteError,
    UploadError,
)
from bolt_server.models import CommandResult, WinRMOptions
from bolt_server.models.command import decode_output
from bolt_server.transports.base import (
    Session,
    Transport,
    task_environment,
    task_input_method,
    task_parameters,
)
from bolt_server.utils.shell import powershell_command, quote_powershell

if TYPE_CHECKING:
    from bolt_server.models import RunCommand, RunScript, RunTask, Target, UploadFile
    from bolt_server.services.file_cache import FileCache

logger = logging.getLogger(__name__)

# Raw bytes per upload command; keeps the encoded command line under the
# 8191 character cmd.exe limit.
UPLOAD_CHUNK_SIZE = 1500

# Propagates the invoked program's exit status to the shell.
_EXIT_STATUS = [
    "$succeeded = $?",
    "if ($LASTEXITCODE) { exit $LASTEXITCODE }",
    "if (-not $succeeded) { exit 1 }",
    "exit 0",
]

_REMOTE_ERRORS = (
    WinRMError,
    WinRMTransportError,
    WinRMOperationTimeoutError,
    requests.exceptions.RequestException,
)


def invoke_script(remote: str, arguments: list[str] | tuple[str, ...] = ()) -> str:
    """PowerShell that runs a file with positional arguments."""
    call = " ".join(["&", quote_powershell(remote), *(quote_powershell(a) for a in arguments)])
    return "\n".join([call, *_EXIT_STATUS])


def task_script(
    remote: str,
    method: str,
    task_name: str,
    parameters: dict[str, Any],
) -> str:
    """PowerShell that runs a task file with its input method.

    Args:
        remote: Path of the task executable on the target
        method: "environment", "stdin", "both" or "powershell"
        task_name: Fully qualified task name
        parameters: Task parameters from the request

    Returns:
        Script text for ``powershell_command``
    """
    lines = []
    if method in ("environment", "both"):
        for name, value in task_environment(task_parameters(task_name, parameters)).items():
            lines.append(
                "[Environment]::SetEnvironmentVariable("
                f"{quote_powershell(name)}, {quote_powershell(value)}, 'Process')"
            )

    call = f"& {quote_powershell(remote)}"
    if method == "powershell":
        lines.append(f"$params = {quote_powershell(json.dumps(parameters))} | ConvertFrom-Json")
        lines.append("$splat = @{}")
        lines.append("$params.PSObject.Properties | ForEach-Object { $splat[$_.Name] = $_.Value }")
        call += " @splat"
    if method in ("stdin", "both"):
        call = f"$input | {call}"

    lines.append(call)
    lines.extend(_EXIT_STATUS)
    return "\n".join(lines)


def write_chunk_script(path: str, chunk: bytes, append: bool) -> str:
    """PowerShell that writes one base64 chunk to a file."""
    mode = "Append" if append else "Create"
    encoded = base64.b64encode(chunk).decode("ascii")
    return "\n".join(
        [
            f"$bytes = [Convert]::FromBase64String('{encoded}')",
            f"$stream = [IO.File]::Open({quote_powershell(path)}, [IO.FileMode]::{mode})",
            "try { $stream.Write($bytes, 0, $bytes.Length) } finally { $stream.Close() }",
        ]
    )


class WinRMSession(Session):
    """An open WinRM shell on one target."""

    def __init__(
        self,
        target: "Target",
        file_cache: "FileCache",
        protocol: Protocol,
        shell_id: str,
    ) -> None:
        super().__init__(target, file_cache)
        self.protocol = protocol
        self.shell_id = shell_id

    def _execute(self, command: str, stdin: str | None = None) -> CommandResult:
        command_id = self.protocol.run_command(self.shell_id, command)
        try:
            if stdin is not None:
                self.protocol.send_command_input(
                    self.shell_id, command_id, stdin.encode("utf-8"), end=True
                )
            stdout, stderr, exit_code = self.protocol.get_command_output(
                self.shell_id, command_id
            )
        finally:
            self.protocol.cleanup_command(self.shell_id, command_id)
        return CommandResult(
            stdout=decode_output(stdout),
            stderr=decode_output(stderr),
            exit_code=exit_code,
        )

    async def _powershell(self, script: str, stdin: str | None = None) -> CommandResult:
        try:
            return await asyncio.to_thread(self._execute, powershell_command(script), stdin)
        except _REMOTE_ERRORS as e:
            raise RemoteError(f"WinRM command failed on {self.target.name}: {e}") from e

    async def _make_tmpdir(self) -> str:
        result = await self._powershell(
            "$dir = Join-Path $env:TEMP ('bolt-' + [guid]::NewGuid().ToString())\n"
            "New-Item -ItemType Directory -Path $dir | Out-Null\n"
            "Write-Output $dir"
        )
        path = result.stdout.strip()
        if not result.ok or not path:
            raise RemoteError(
                f"Could not make tempdir on {self.target.name}: {result.stderr.strip()}"
            )
        return path

    async def _remove(self, path: str) -> None:
        try:
            result = await self._powershell(
                f"Remove-Item -Recurse -Force -Path {quote_powershell(path)}"
            )
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

    async def _make_dirs(self, paths: list[str]) -> None:
        if not paths:
            return
        script = "\n".join(
            f"New-Item -ItemType Directory -Force -Path {quote_powershell(p)} | Out-Null"
            for p in paths
        )
        result = await self._powershell(script)
        if not result.ok:
            raise UploadError(
                f"Could not create directories on {self.target.name}: "
                f"{result.stderr.strip()}",
                details={"directories": paths},
            )

    async def _put(self, local: Path, remote: str) -> None:
        content = await asyncio.to_thread(local.read_bytes)
        chunks = [
            content[i : i + UPLOAD_CHUNK_SIZE]
            for i in range(0, len(content), UPLOAD_CHUNK_SIZE)
        ] or [b""]
        logger.debug(
            "Uploading %s to %s:%s in %d chunk(s)",
            local.name,
            self.target.name,
            remote,
            len(chunks),
        )
        for index, chunk in enumerate(chunks):
            result = await self._powershell(write_chunk_script(remote, chunk, index > 0))
            if not result.ok:
                raise UploadError(
                    f"Failed to upload {remote} to {self.target.name}: "
                    f"{result.stderr.strip()}",
                    details={"files": [remote]},
                )

    async def run_task(self, work: "RunTask") -> CommandResult:
        executable = work.task.select_implementation("powershell")
        local = await self.file_cache.get(executable)
        method = task_input_method(work.task.metadata, executable.filename, "both")

        tmpdir = await self._make_tmpdir()
        try:
            remote = ntpath.join(tmpdir, Path(executable.filename).name)
            await self._put(local, remote)
            stdin = None
            if method in ("stdin", "both"):
                stdin = json.dumps(task_parameters(work.task.name, work.parameters))
            logger.info(
                "Running task %s on %s (input_method=%s)",
                work.task.name,
                self.target.name,
                method,
            )
            script = task_script(remote, method, work.task.name, work.parameters)
            return await self._powershell(script, stdin=stdin)
        finally:
            await self._remove(tmpdir)

    async def run_command(self, work: "RunCommand") -> CommandResult:
        logger.info("Running command on %s", self.target.name)
        return await self._powershell("\n".join([work.command, *_EXIT_STATUS]))

    async def run_script(self, work: "RunScript") -> CommandResult:
        local = await self.file_cache.get(work.script)
        tmpdir = await self._make_tmpdir()
        try:
            remote = ntpath.join(tmpdir, Path(work.script.filename).name)
            await self._put(local, remote)
            logger.info("Running script %s on %s", work.script.filename, self.target.name)
            return await self._powershell(invoke_script(remote, work.arguments))
        finally:
            await self._remove(tmpdir)

    async def upload_file(self, work: "UploadFile") -> None:
        if work.is_single_file:
            entry = work.entries[0]
            assert entry.file is not None
            await self._put(await self.file_cache.get(entry.file), work.destination)
            return

        dirs = [work.destination]
        files: list[tuple[Path, str]] = []
        for entry in sorted(work.entries, key=lambda e: e.relative_path):
            remote = ntpath.join(work.destination, *entry.relative_path.split("/"))
            if entry.kind == "directory":
                dirs.append(remote)
            else:
                assert entry.file is not None
                dirs.append(ntpath.dirname(remote))
                files.append((await self.file_cache.get(entry.file), remote))

        await self._make_dirs(list(dict.fromkeys(dirs)))
        for local, remote in files:
            await self._put(local, remote)

    async def close(self) -> None:
        try:
            await asyncio.to_thread(self.protocol.close_shell, self.shell_id)
        except _REMOTE_ERRORS as e:
            logger.debug("Error while closing shell on %s: %s", self.target.name, e)
        logger.debug("Closed WinRM shell on %s", self.target.name)


class WinRMTransport(Transport):
    """Opens pywinrm shells with NTLM password auth."""

    name = "winrm"

    @staticmethod
    def endpoint(target: "Target") -> str:
        assert isinstance(target.options, WinRMOptions)
        scheme = "https" if target.options.ssl else "http"
        return f"{scheme}://{target.hostname}:{target.port}/wsman"

    def protocol_for(self, target: "Target") -> Protocol:
        """Build the pywinrm protocol client for a target."""
        assert isinstance(target.options, WinRMOptions)
        timeout = target.options.connect_timeout
        return Protocol(
            endpoint=self.endpoint(target),
            transport="ntlm",
            username=target.user,
            password=target.password,
            server_cert_validation="validate" if target.options.ssl_verify else "ignore",
            operation_timeout_sec=timeout,
            read_timeout_sec=timeout + 10,
        )

    async def connect(self, target: "Target", file_cache: "FileCache") -> WinRMSession:
        host = target.hostname
        endpoint = self.endpoint(target)
        logger.info("Opening WinRM shell on %s (%s@%s)", host, target.user, endpoint)

        protocol = self.protocol_for(target)
        try:
            shell_id = await asyncio.to_thread(protocol.open_shell)
        except InvalidCredentialsError as e:
            raise AuthenticationError(
                host, f"Authentication failed for {target.user}@{host}: {e}"
            ) from e
        except requests.exceptions.SSLError as e:
            raise HostKeyError(
                host, f"Certificate verification failed for {host}: {e}"
            ) from e
        except requests.exceptions.Timeout as e:
            raise ConnectTimeout(host, f"Timed out connecting to {endpoint}") from e
        except requests.exceptions.ConnectionError as e:
            raise ConnectError(host, f"Failed to connect to {endpoint}: {e}") from e
        except (WinRMError, WinRMTransportError, WinRMOperationTimeoutError) as e:
            raise ProtocolError(host, f"WinRM error connecting to {host}: {e}") from e

        logger.info("WinRM shell opened on %s", host)
        return WinRMSession(target, file_cache, protocol, shell_id)
