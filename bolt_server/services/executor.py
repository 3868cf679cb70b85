"""Per-target execution: connect, deliver, close.

Every error raised while working on one target becomes that target's
failure Outcome, so one bad node never affects the others.
"""

import logging
import time
import traceback
from typing import TYPE_CHECKING

from bolt_server.errors import BoltError, InternalError
from bolt_server.models import (
    CheckConnection,
    Outcome,
    RunCommand,
    RunScript,
    RunTask,
    Target,
    UploadFile,
    WorkItem,
)

if TYPE_CHECKING:
    from bolt_server.services.file_cache import FileCache
    from bolt_server.transports.base import Session
    from bolt_server.transports.registry import TransportRegistry

logger = logging.getLogger(__name__)


class Executor:
    """Runs one work item against one target through its transport."""

    def __init__(self, registry: "TransportRegistry", file_cache: "FileCache") -> None:
        self.registry = registry
        self.file_cache = file_cache

    async def execute(self, transport: str, target: Target, work: WorkItem) -> Outcome:
        """Run work on a target and report the outcome.

        Args:
            transport: Registered transport name
            target: Target to run on
            work: Work item to deliver

        Returns:
            Outcome for the target; never raises except on cancellation
        """
        start = time.perf_counter()
        try:
            session = await self.registry.get(transport).connect(target, self.file_cache)
            async with session:
                outcome = await self._deliver(session, target, work)
        except BoltError as e:
            logger.warning(
                "%s on %s failed (%s): %s", work.action, target, e.issue_code, e.msg
            )
            return Outcome.for_error(target.name, work.action, work.object, e)
        except Exception as e:
            logger.exception("Unexpected error running %s on %s", work.action, target)
            error = InternalError(
                f"{type(e).__name__}: {e}",
                details={"stack_trace": traceback.format_exc()},
            )
            return Outcome.for_error(target.name, work.action, work.object, error)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s on %s -> %s [%.1fms]",
            work.action,
            target,
            outcome.status.value,
            elapsed_ms,
        )
        return outcome

    async def _deliver(self, session: "Session", target: Target, work: WorkItem) -> Outcome:
        name = target.name
        if isinstance(work, RunTask):
            result = await session.run_task(work)
            return Outcome.for_task(name, work.task.name, result)
        if isinstance(work, RunCommand):
            result = await session.run_command(work)
            return Outcome.for_command(name, work.action, work.command, result)
        if isinstance(work, RunScript):
            result = await session.run_script(work)
            return Outcome.for_command(name, work.action, work.script.filename, result)
        if isinstance(work, UploadFile):
            await session.upload_file(work)
            return Outcome.from_value(
                name,
                work.action,
                work.destination,
                {"_output": f"Uploaded '{work.destination}' to '{name}'"},
            )
        if isinstance(work, CheckConnection):
            return Outcome.from_value(name, work.action, None, {})
        raise TypeError(f"Unsupported work item: {type(work).__name__}")
