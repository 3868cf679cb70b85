"""Transport interfaces.

A Transport opens Sessions to Targets. A Session delivers work items and
is owned by exactly one dispatcher worker for its whole life.
"""

import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bolt_server.models import (
        CommandResult,
        RunCommand,
        RunScript,
        RunTask,
        Target,
        UploadFile,
    )
    from bolt_server.services.file_cache import FileCache


class Session(ABC):
    """An open connection to one target."""

    def __init__(self, target: "Target", file_cache: "FileCache") -> None:
        self.target = target
        self.file_cache = file_cache

    @abstractmethod
    async def run_task(self, work: "RunTask") -> "CommandResult":
        """Upload the task's executable and run it with parameters."""

    @abstractmethod
    async def run_command(self, work: "RunCommand") -> "CommandResult":
        """Run a command line."""

    @abstractmethod
    async def run_script(self, work: "RunScript") -> "CommandResult":
        """Upload a script and run it with arguments."""

    @abstractmethod
    async def upload_file(self, work: "UploadFile") -> None:
        """Copy files and directories to the destination."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Must not raise."""

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class Transport(ABC):
    """Protocol implementation capable of opening sessions to targets."""

    name: str = ""

    @abstractmethod
    async def connect(self, target: "Target", file_cache: "FileCache") -> Session:
        """Open an authenticated session.

        Raises:
            ConnectError: On any transport-layer failure
        """


def task_input_method(metadata: dict[str, Any], filename: str, default: str) -> str:
    """Resolve how parameters reach a task.

    Args:
        metadata: Task metadata
        filename: Executable file name
        default: Transport default for files without an explicit method

    Returns:
        One of "environment", "stdin", "both", "powershell"
    """
    method = metadata.get("input_method")
    if method:
        return str(method)
    if filename.lower().endswith(".ps1"):
        return "powershell"
    return default


def env_value(value: Any) -> str:
    """Encode a task parameter for a PT_ environment variable."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def task_environment(parameters: dict[str, Any]) -> dict[str, str]:
    return {f"PT_{name}": env_value(value) for name, value in parameters.items()}


def task_parameters(task_name: str, parameters: dict[str, Any]) -> dict[str, Any]:
    """Parameters as seen by the task, including the ``_task`` name."""
    return {**parameters, "_task": task_name}
