"""Scheduler: turns wall-clock time into runs of schedule-triggered workflows.

Every tick queries the workflows whose ``nextRun`` is due, launches one
execution per workflow and, once the attempt settles, persists the next
fire time computed from the clock at that moment. A workflow still running
from an earlier tick is not launched again.
"""

from __future__ import annotations

import asyncio
from zoneinfo import ZoneInfo

from storeflow.application.dtos.workflow import CancellationToken, ExecutionContext
from storeflow.application.interfaces.ports import IBroadcastChannel, IWorkflowRepository
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.domain.entities.workflow import Workflow
from storeflow.domain.schedule import calculate_next_run
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.utils.clock import IClock, SystemClock

logger = get_logger(__name__)


class WorkflowScheduler:
    """Polling loop over ``due_scheduled``.

    Args:
        repository: Due-workflow queries and next-run writes.
        dispatcher: Runs the workflow and records its outcome.
        clock: Time source for due checks, next-run and the sleep between ticks.
        tick_seconds: Poll interval.
        timezone: Zone the schedule's wall-clock fields are read in.
        broadcast_channel: Channel placed on the derived execution context.
    """

    def __init__(
        self,
        repository: IWorkflowRepository,
        dispatcher: WorkflowDispatcher,
        clock: IClock | None = None,
        tick_seconds: float = 30.0,
        timezone: str = "UTC",
        broadcast_channel: IBroadcastChannel | None = None,
    ) -> None:
        self._repository = repository
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._tick_seconds = tick_seconds
        self._zone = ZoneInfo(timezone)
        self._broadcast_channel = broadcast_channel
        self._running: dict[str, tuple[asyncio.Task[None], CancellationToken]] = {}
        self._loop_task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def in_flight(self) -> int:
        return len(self._running)

    def _context_for(self, workflow: Workflow, token: CancellationToken) -> ExecutionContext:
        return ExecutionContext(
            store_id=workflow.store_id,
            organization_id=workflow.organization_id,
            broadcast_channel=self._broadcast_channel,
            cancellation=token,
        )

    async def tick(self) -> int:
        """Launch every due workflow; returns how many were launched."""
        now = self._clock.now()
        try:
            due = await self._repository.due_scheduled(now)
        except Exception:
            logger.exception("Scheduled workflow scan failed")
            return 0

        launched = 0
        for workflow in due:
            if workflow.id in self._running:
                logger.debug("Workflow %s still running from a previous tick", workflow.id)
                continue
            token = CancellationToken()
            task = asyncio.create_task(
                self._run(workflow, token), name=f"scheduled-workflow-{workflow.id}"
            )
            self._running[workflow.id] = (task, token)
            launched += 1
        if launched:
            logger.info("Scheduler launched %d workflow(s)", launched)
        return launched

    async def _run(self, workflow: Workflow, token: CancellationToken) -> None:
        try:
            await self._dispatcher.execute_workflow(
                workflow, {}, self._context_for(workflow, token)
            )
        except Exception:
            logger.exception("Scheduled workflow %s failed", workflow.id)
        finally:
            try:
                next_run = calculate_next_run(
                    self._clock.now(), workflow.trigger.schedule, self._zone
                )
                await self._repository.set_next_run(workflow.id, next_run)
            except Exception:
                logger.exception("Failed to advance nextRun for workflow %s", workflow.id)
            finally:
                self._running.pop(workflow.id, None)

    async def drain(self) -> None:
        """Wait for every execution launched so far to settle."""
        tasks = [task for task, _ in self._running.values()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            sleeper = asyncio.ensure_future(self._clock.sleep(self._tick_seconds))
            stopper = asyncio.ensure_future(self._stopping.wait())
            try:
                await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                sleeper.cancel()
                stopper.cancel()

    async def start(self) -> None:
        if self._loop_task is not None:
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self._loop(), name="workflow-scheduler")
        logger.info("Workflow scheduler started (tick %.1fs)", self._tick_seconds)

    async def stop(self) -> None:
        """Interrupt the sleep, cancel launched executions and wait for them."""
        self._stopping.set()
        if self._loop_task is not None:
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None
        for _, token in list(self._running.values()):
            token.cancel()
        await self.drain()
        logger.info("Workflow scheduler stopped")
