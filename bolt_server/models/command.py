"""Command execution data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Result of a remote process execution."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def decode_output(data: str | bytes | None) -> str:
    """Normalize process output to text."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data
