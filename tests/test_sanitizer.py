"""Tests for outcome sanitization."""

from bolt_server.models import Outcome
from bolt_server.services.sanitizer import INTERNAL_ERROR_MSG, scrub_outcome


def _failure(error: dict) -> Outcome:
    return Outcome.from_value("h1", "task", "sample::echo", {"_error": error})


def test_internal_error_fully_scrubbed() -> None:
    outcome = _failure(
        {
            "kind": "boltserver/internal-error",
            "issue_code": "INTERNAL_ERROR",
            "msg": "KeyError: 'secret_path' in /srv/app/executor.py",
            "details": {"stack_trace": "Traceback (most recent call last): ..."},
        }
    )

    scrubbed = scrub_outcome(outcome)

    assert scrubbed.value["_error"] == {
        "kind": "boltserver/internal-error",
        "issue_code": "INTERNAL_ERROR",
        "msg": INTERNAL_ERROR_MSG,
        "details": {},
    }
    assert scrubbed.status == outcome.status
    assert "Traceback" in outcome.value["_error"]["details"]["stack_trace"]


def test_trace_keys_removed_from_other_errors() -> None:
    outcome = _failure(
        {
            "kind": "puppetlabs.tasks/connect-error",
            "msg": "Failed to connect to h1",
            "details": {"stack_trace": "...", "backtrace": ["a", "b"], "host": "h1"},
        }
    )

    error = scrub_outcome(outcome).value["_error"]

    assert error["msg"] == "Failed to connect to h1"
    assert error["details"] == {"host": "h1"}


def test_task_error_left_intact() -> None:
    error = {
        "kind": "puppetlabs.tasks/task-error",
        "issue_code": "TASK_ERROR",
        "msg": "The task failed with exit code 1:\nno such file",
        "details": {"exit_code": 1},
    }
    outcome = Outcome.from_value("h1", "task", "t", {"_output": "x", "_error": error})

    assert scrub_outcome(outcome) == outcome


def test_success_passes_through() -> None:
    outcome = Outcome.from_value("h1", "command", "id", {"stdout": "uid=0"})
    assert scrub_outcome(outcome) is outcome
