"""Work item and execution request models."""

from dataclasses import dataclass, field
from typing import Any, Union

from bolt_server.models.target import Target


@dataclass(frozen=True)
class FileRef:
    """A file served by the file server, identified by checksum."""

    filename: str
    sha256: str
    uri_path: str
    uri_params: dict[str, Any] = field(default_factory=dict)
    size_bytes: int | None = None

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "FileRef":
        uri = data.get("uri", {})
        return cls(
            filename=data["filename"],
            sha256=data["sha256"],
            uri_path=uri["path"],
            uri_params=dict(uri.get("params", {})),
            size_bytes=data.get("size_bytes", data.get("size")),
        )


@dataclass(frozen=True)
class Task:
    """A resolved task: name, metadata and the files implementing it."""

    name: str
    metadata: dict[str, Any]
    files: tuple[FileRef, ...]

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "Task":
        return cls(
            name=data["name"],
            metadata=dict(data.get("metadata", {})),
            files=tuple(FileRef.from_data(f) for f in data["files"]),
        )

    @property
    def input_method(self) -> str | None:
        return self.metadata.get("input_method")

    def select_implementation(self, requirement: str) -> FileRef:
        """Pick the file to execute for a transport feature.

        Uses ``metadata.implementations`` when present, matching an entry
        that lists ``requirement`` (or has no requirements). Falls back to
        the first file.

        Args:
            requirement: Transport feature, "shell" or "powershell"

        Returns:
            The file to execute
        """
        by_name = {f.filename: f for f in self.files}
        for impl in self.metadata.get("implementations", []):
            requirements = impl.get("requirements", [])
            if requirement in requirements or not requirements:
                chosen = by_name.get(impl.get("name", ""))
                if chosen is not None:
                    return chosen
        return self.files[0]


@dataclass(frozen=True)
class RunTask:
    task: Task
    parameters: dict[str, Any] = field(default_factory=dict)

    action = "task"

    @property
    def object(self) -> str:
        return self.task.name


@dataclass(frozen=True)
class RunCommand:
    command: str

    action = "command"

    @property
    def object(self) -> str:
        return self.command


@dataclass(frozen=True)
class RunScript:
    script: FileRef
    arguments: tuple[str, ...] = ()

    action = "script"

    @property
    def object(self) -> str:
        return self.script.filename


@dataclass(frozen=True)
class UploadEntry:
    """One file or directory of an upload, relative to its destination."""

    relative_path: str
    kind: str
    file: FileRef | None = None

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "UploadEntry":
        kind = data.get("kind", "file")
        file = None
        if kind == "file":
            file = FileRef.from_data(
                {
                    "filename": data["relative_path"].rsplit("/", 1)[-1],
                    "sha256": data["sha256"],
                    "uri": data["uri"],
                }
            )
        return cls(relative_path=data["relative_path"], kind=kind, file=file)


@dataclass(frozen=True)
class UploadFile:
    entries: tuple[UploadEntry, ...]
    destination: str

    action = "upload"

    @property
    def object(self) -> str:
        return self.destination

    @property
    def is_single_file(self) -> bool:
        return len(self.entries) == 1 and self.entries[0].kind == "file"


@dataclass(frozen=True)
class CheckConnection:
    action = "check_node_connection"

    @property
    def object(self) -> None:
        return None


WorkItem = Union[RunTask, RunCommand, RunScript, UploadFile, CheckConnection]


@dataclass(frozen=True)
class ExecutionRequest:
    """A validated request: who to run on and what to run."""

    transport: str
    action: str
    targets: tuple[Target, ...]
    work: WorkItem
    aggregate: bool
