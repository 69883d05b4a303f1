"""Trigger dispatcher: maps events to matching workflows and runs them.

``trigger`` is a synchronous, non-blocking enqueue onto a bounded
asyncio.Queue drained by a fixed pool of worker tasks. Each event resolves
to the store's active workflows for that type; those whose conditions hold
run concurrently, each isolated from the others, and each run records
exactly one outcome.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from storeflow.application.dtos.workflow import ExecutionContext, ExecutionResult
from storeflow.application.interfaces.ports import IWorkflowRepository
from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.conditions import conditions_hold
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.domain.entities.workflow import Workflow
from storeflow.domain.enums import TriggerType
from storeflow.domain.exceptions import (
    ExecutionCancelledError,
    InternalActionError,
)
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.telemetry.tracing import add_span_attributes, traced

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Job:
    """Queued unit of work: an event fan-out or a single manual run."""

    payload: dict[str, Any]
    ctx: ExecutionContext
    event_type: str | None = None
    workflow_id: str | None = None


class WorkflowDispatcher:
    """Event ingress plus the per-workflow execution loop.

    Args:
        repository: Workflow queries.
        interpreter: Executes action sequences.
        recorder: Records one outcome per execution.
        workers: Size of the worker pool.
        queue_size: Bound of the pending-event queue; 0 means unbounded.
    """

    def __init__(
        self,
        repository: IWorkflowRepository,
        interpreter: ActionInterpreter,
        recorder: ExecutionRecorder,
        workers: int = 4,
        queue_size: int = 1000,
    ) -> None:
        self._repository = repository
        self._interpreter = interpreter
        self._recorder = recorder
        self._worker_count = max(workers, 1)
        self._queue: asyncio.Queue[_Job] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def trigger(
        self,
        event_type: TriggerType | str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> bool:
        """Enqueue an event; returns False when it was dropped.

        Events are dropped when the queue is full or the dispatcher has not
        been started.
        """
        event = event_type.value if isinstance(event_type, TriggerType) else event_type
        return self._enqueue(_Job(payload=payload or {}, ctx=ctx, event_type=event))

    def trigger_workflow(
        self,
        workflow_id: str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> bool:
        """Enqueue a single manual run of one workflow."""
        return self._enqueue(_Job(payload=payload or {}, ctx=ctx, workflow_id=workflow_id))

    def _enqueue(self, job: _Job) -> bool:
        if not self.running:
            logger.warning(
                "Dispatcher not running; dropping %s for store %s",
                job.event_type or f"manual run of {job.workflow_id}",
                job.ctx.store_id,
            )
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error(
                "Dispatcher queue full (%d); dropping %s for store %s",
                self._queue.maxsize,
                job.event_type or f"manual run of {job.workflow_id}",
                job.ctx.store_id,
            )
            return False
        return True

    @staticmethod
    def _matches(workflow: Workflow, payload: dict[str, Any]) -> bool:
        try:
            return conditions_hold(workflow.trigger.conditions, payload)
        except Exception:
            logger.exception("Skipping workflow %s: trigger conditions failed", workflow.id)
            return False

    async def dispatch(
        self,
        event_type: TriggerType | str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> list[ExecutionResult]:
        """Run every matching workflow for one event and wait for all of them."""
        event = event_type.value if isinstance(event_type, TriggerType) else event_type
        payload = payload or {}
        try:
            workflows = await self._repository.active_for(ctx.store_id, event)
        except Exception:
            logger.exception(
                "Failed to load workflows for %s (store %s)", event, ctx.store_id
            )
            return []

        matching = [w for w in workflows if self._matches(w, payload)]
        if not matching:
            logger.debug("No workflows matched %s for store %s", event, ctx.store_id)
            return []

        logger.info(
            "Event %s matched %d workflow(s) for store %s", event, len(matching), ctx.store_id
        )
        outcomes = await asyncio.gather(
            *(self.execute_workflow(workflow, payload, ctx) for workflow in matching),
            return_exceptions=True,
        )
        results: list[ExecutionResult] = []
        for workflow, outcome in zip(matching, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Workflow %s raised outside its execution: %r", workflow.id, outcome
                )
                continue
            results.append(outcome)
        return results

    @traced("workflow.execute")
    async def execute_workflow(
        self,
        workflow: Workflow,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> ExecutionResult:
        """Run the workflow's ordered actions and record exactly one outcome."""
        add_span_attributes(
            workflow_id=workflow.id,
            store_id=workflow.store_id,
            trigger_type=workflow.trigger.type.value,
        )
        logger.info("Executing workflow %s (%s)", workflow.id, workflow.name)
        try:
            sequence = await self._interpreter.run_sequence(
                workflow.ordered_actions(), payload or {}, ctx
            )
        except asyncio.CancelledError:
            await self._recorder.record(workflow.id, False, ExecutionCancelledError())
            raise
        except Exception as e:
            logger.exception("Workflow %s crashed", workflow.id)
            error = InternalActionError(f"{type(e).__name__}: {e}")
            error.__cause__ = e
            await self._recorder.record(workflow.id, False, error)
            return ExecutionResult(
                workflow_id=workflow.id,
                success=False,
                error=error.message,
                error_kind=error.kind,
            )

        if sequence.ok:
            await self._recorder.record(workflow.id, True)
            logger.info("Workflow %s completed", workflow.id)
            return ExecutionResult(
                workflow_id=workflow.id, success=True, trace=tuple(sequence.trace)
            )

        error = sequence.error
        assert error is not None
        logger.warning(
            "Workflow %s failed at %s action [%s]: %s",
            workflow.id,
            error.action_type,
            error.kind.value,
            error.message,
        )
        await self._recorder.record(workflow.id, False, error)
        return ExecutionResult(
            workflow_id=workflow.id,
            success=False,
            error=error.message,
            error_kind=error.kind,
            trace=tuple(sequence.trace),
        )

    async def _run_job(self, job: _Job) -> None:
        if job.event_type is not None:
            await self.dispatch(job.event_type, job.payload, job.ctx)
            return
        workflow = await self._repository.get(job.workflow_id or "")
        if workflow is None or not workflow.is_executable:
            logger.warning("Manual run skipped; workflow %s is not executable", job.workflow_id)
            return
        await self.execute_workflow(workflow, job.payload, job.ctx)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run_job(job)
            except Exception:
                logger.exception("Dispatcher worker %d failed on job", index)
            finally:
                self._queue.task_done()

    async def start(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"workflow-dispatcher-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Workflow dispatcher started with %d workers", self._worker_count)

    async def join(self) -> None:
        """Wait until every queued job (and its executions) has finished."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers and discard queued jobs.

        In-flight executions are recorded as cancelled; queued jobs never start.
        """
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.warning("Discarded %d queued job(s) on stop", dropped)
        if workers:
            logger.info("Workflow dispatcher stopped")
