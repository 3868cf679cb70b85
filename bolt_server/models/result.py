"""Per-target outcomes and their aggregate."""

import json
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from bolt_server.errors import BoltError
from bolt_server.models.command import CommandResult


class Status(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Outcome:
    """Result of running a work item against one target."""

    target: str
    action: str
    object: str | None
    status: Status
    value: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is Status.SUCCESS

    def with_value(self, value: dict[str, Any]) -> "Outcome":
        return replace(self, value=value)

    def to_data(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "action": self.action,
            "object": self.object,
            "status": self.status.value,
            "value": self.value,
        }

    @classmethod
    def from_value(
        cls, target: str, action: str, obj: str | None, value: dict[str, Any]
    ) -> "Outcome":
        """Outcome whose status follows the presence of ``_error``."""
        status = Status.FAILURE if "_error" in value else Status.SUCCESS
        return cls(target=target, action=action, object=obj, status=status, value=value)

    @classmethod
    def for_error(
        cls, target: str, action: str, obj: str | None, error: BoltError
    ) -> "Outcome":
        return cls(
            target=target,
            action=action,
            object=obj,
            status=Status.FAILURE,
            value={"_error": error.to_data()},
        )

    @classmethod
    def for_task(cls, target: str, task_name: str, result: CommandResult) -> "Outcome":
        """Build a task outcome.

        Stdout that parses as a JSON object becomes the value; anything else
        is reported under ``_output``. A non-zero exit code without an
        explicit ``_error`` from the task adds a task-error.
        """
        value: dict[str, Any]
        try:
            parsed = json.loads(result.stdout)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            value = parsed
        else:
            value = {"_output": result.stdout}

        if not result.ok and "_error" not in value:
            msg = f"The task failed with exit code {result.exit_code}"
            if result.stderr:
                msg += f":\n{result.stderr}"
            value["_error"] = {
                "kind": "puppetlabs.tasks/task-error",
                "issue_code": "TASK_ERROR",
                "msg": msg,
                "details": {"exit_code": result.exit_code},
            }
        return cls.from_value(target, "task", task_name, value)

    @classmethod
    def for_command(
        cls, target: str, action: str, obj: str, result: CommandResult
    ) -> "Outcome":
        """Build a command or script outcome."""
        value: dict[str, Any] = {
            "stdout": result.stdout,
            "stderr": result.stderr,
            "merged_output": result.stdout + result.stderr,
            "exit_code": result.exit_code,
        }
        if not result.ok:
            value["_error"] = {
                "kind": "puppetlabs.tasks/command-error",
                "issue_code": "COMMAND_ERROR",
                "msg": f"The {action} failed with exit code {result.exit_code}",
                "details": {"exit_code": result.exit_code},
            }
        return cls.from_value(target, action, obj, value)


@dataclass(frozen=True)
class ResultSet:
    """Ordered outcomes of one request, one per target."""

    outcomes: tuple[Outcome, ...]

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def status(self) -> Status:
        return Status.SUCCESS if self.ok else Status.FAILURE

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[Outcome]:
        return iter(self.outcomes)

    def first(self) -> Outcome:
        return self.outcomes[0]

    def to_data(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "result": [o.to_data() for o in self.outcomes],
        }
