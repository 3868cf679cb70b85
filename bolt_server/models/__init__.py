"""Data models for bolt_server."""

from bolt_server.models.command import CommandResult
from bolt_server.models.result import Outcome, ResultSet, Status
from bolt_server.models.target import (
    Credential,
    Password,
    PrivateKey,
    SSHOptions,
    Target,
    WinRMOptions,
)
from bolt_server.models.work import (
    CheckConnection,
    ExecutionRequest,
    FileRef,
    RunCommand,
    RunScript,
    RunTask,
    Task,
    UploadEntry,
    UploadFile,
    WorkItem,
)

__all__ = [
    "CheckConnection",
    "CommandResult",
    "Credential",
    "ExecutionRequest",
    "FileRef",
    "Outcome",
    "Password",
    "PrivateKey",
    "ResultSet",
    "RunCommand",
    "RunScript",
    "RunTask",
    "SSHOptions",
    "Status",
    "Target",
    "Task",
    "UploadEntry",
    "UploadFile",
    "WinRMOptions",
    "WorkItem",
]
