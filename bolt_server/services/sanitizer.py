"""Scrubs internal diagnostics from outcomes before they leave the service."""

from typing import Any

from bolt_server.errors import InternalError
from bolt_server.models import Outcome

INTERNAL_ERROR_MSG = "An unexpected error occurred"

TRACE_KEYS = ("stack_trace", "backtrace")


def scrub_error(error: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of an ``_error`` mapping without internal detail."""
    scrubbed = dict(error)
    if scrubbed.get("kind") == InternalError.kind:
        scrubbed["msg"] = INTERNAL_ERROR_MSG
        scrubbed["details"] = {}
        return scrubbed

    details = scrubbed.get("details")
    if isinstance(details, dict):
        scrubbed["details"] = {k: v for k, v in details.items() if k not in TRACE_KEYS}
    return scrubbed


def scrub_outcome(outcome: Outcome) -> Outcome:
    """Remove stack traces and internal fault text from an outcome.

    Task and command errors keep their message and details; only trace
    keys are dropped from them.
    """
    error = outcome.value.get("_error")
    if not isinstance(error, dict):
        return outcome
    return outcome.with_value({**outcome.value, "_error": scrub_error(error)})
