"""Fan-out of one request across its targets."""

import asyncio
import logging
from typing import TYPE_CHECKING

from bolt_server.models import ExecutionRequest, Outcome, ResultSet
from bolt_server.services.sanitizer import scrub_outcome

if TYPE_CHECKING:
    from bolt_server.services.executor import Executor

logger = logging.getLogger(__name__)


class Dispatcher:
    """Runs a request on every target concurrently.

    A process-wide semaphore bounds the number of open sessions. Each
    worker fills its own slot of a pre-sized list, so result order always
    matches target order.
    """

    def __init__(self, executor: "Executor", max_concurrency: int = 100) -> None:
        """Initialize dispatcher.

        Raises:
            ValueError: If max_concurrency is not positive
        """
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {max_concurrency}")
        self.executor = executor
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def dispatch(self, request: ExecutionRequest) -> ResultSet:
        """Execute a request and collect sanitized outcomes in input order."""
        slots: list[Outcome | None] = [None] * len(request.targets)

        async def run_one(index: int) -> None:
            target = request.targets[index]
            async with self._semaphore:
                outcome = await self.executor.execute(request.transport, target, request.work)
            slots[index] = scrub_outcome(outcome)

        logger.info(
            "Dispatching %s/%s to %d target(s)",
            request.transport,
            request.action,
            len(request.targets),
        )
        await asyncio.gather(*(run_one(i) for i in range(len(request.targets))))

        outcomes = tuple(o for o in slots if o is not None)
        result = ResultSet(outcomes)
        logger.info(
            "Completed %s/%s: %s (%d/%d succeeded)",
            request.transport,
            request.action,
            result.status.value,
            sum(1 for o in outcomes if o.ok),
            len(outcomes),
        )
        return result
