"""Workflow engine facade.

Bundles the repository, dispatcher and scheduler behind the operations the
HTTP layer and in-process event producers use. The engine is a constructed
value (see ``build_workflow_engine``) whose lifetime is tied to the app's
lifespan.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from storeflow.application.dtos.workflow import ExecutionContext, ExecutionResult
from storeflow.application.interfaces.ports import IBroadcastChannel, IWorkflowRepository
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.scheduler import WorkflowScheduler
from storeflow.domain.entities.workflow import Workflow, WorkflowStats
from storeflow.domain.enums import TriggerType
from storeflow.domain.exceptions import ResourceNotFoundException
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def _visible_to(workflow: Workflow, store_id: str, organization_id: str | None) -> bool:
    """A workflow is visible to its own store or to any store of its organization."""
    if workflow.is_deleted:
        return False
    if workflow.belongs_to_store(store_id):
        return True
    return organization_id is not None and workflow.organization_id == organization_id


class WorkflowEngine:
    """Entry point for triggering, running and inspecting workflows.

    Args:
        repository: Workflow repository.
        dispatcher: Event dispatcher and executor.
        scheduler: Schedule loop; None when SCHEDULER_ENABLED is false.
        broadcast_channel: Default channel placed on contexts built here.
        on_shutdown: Async callbacks run after stop() (close clients, dispose engines).
    """

    def __init__(
        self,
        repository: IWorkflowRepository,
        dispatcher: WorkflowDispatcher,
        scheduler: WorkflowScheduler | None = None,
        broadcast_channel: IBroadcastChannel | None = None,
        on_shutdown: Sequence[Callable[[], Awaitable[Any]]] = (),
    ) -> None:
        self.repository = repository
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.broadcast_channel = broadcast_channel
        self._on_shutdown = list(on_shutdown)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def context_for(
        self,
        store_id: str,
        organization_id: str | None = None,
        user_id: str | None = None,
        **extra: Any,
    ) -> ExecutionContext:
        """Build an execution context carrying the engine's broadcast channel."""
        return ExecutionContext(
            store_id=store_id,
            organization_id=organization_id,
            user_id=user_id,
            broadcast_channel=self.broadcast_channel,
            extra=extra,
        )

    def trigger(
        self,
        event_type: TriggerType | str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> bool:
        """Fire-and-forget event ingress (returns False if the event was dropped)."""
        return self.dispatcher.trigger(event_type, payload, ctx)

    async def execute_workflow(
        self,
        workflow: Workflow,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> ExecutionResult:
        return await self.dispatcher.execute_workflow(workflow, payload, ctx)

    async def get_visible(
        self, workflow_id: str, store_id: str, organization_id: str | None = None
    ) -> Workflow:
        """Return the workflow if the store may see it.

        Raises:
            ResourceNotFoundException: Unknown, deleted or owned by another tenant.
        """
        workflow = await self.repository.get(workflow_id)
        if workflow is None or not _visible_to(workflow, store_id, organization_id):
            raise ResourceNotFoundException("Workflow", workflow_id)
        return workflow

    async def run_manual(
        self,
        workflow_id: str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> Workflow:
        """Queue one run of an active workflow; returns without waiting for it.

        Raises:
            ResourceNotFoundException: Not visible to the store, or inactive.
        """
        workflow = await self.get_visible(workflow_id, ctx.store_id, ctx.organization_id)
        if not workflow.is_executable:
            raise ResourceNotFoundException("Workflow", workflow_id)
        self.dispatcher.trigger_workflow(workflow.id, payload, ctx)
        logger.info("Manual run queued for workflow %s", workflow.id)
        return workflow

    async def test_run(
        self,
        workflow_id: str,
        payload: dict[str, Any] | None,
        ctx: ExecutionContext,
    ) -> ExecutionResult:
        """Run a workflow synchronously with sample data (inactive ones included)."""
        workflow = await self.get_visible(workflow_id, ctx.store_id, ctx.organization_id)
        return await self.dispatcher.execute_workflow(workflow, payload, ctx)

    async def stats(
        self, workflow_id: str, store_id: str, organization_id: str | None = None
    ) -> WorkflowStats:
        workflow = await self.get_visible(workflow_id, store_id, organization_id)
        return workflow.stats

    async def start(self) -> None:
        if self._started:
            return
        await self.dispatcher.start()
        if self.scheduler is not None:
            await self.scheduler.start()
        self._started = True
        logger.info("Workflow engine started")

    async def stop(self) -> None:
        """Stop the scheduler, then the dispatcher, then release resources."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.dispatcher.stop()
        for callback in self._on_shutdown:
            try:
                await callback()
            except Exception:
                logger.exception("Engine shutdown callback failed")
        self._started = False
        logger.info("Workflow engine stopped")
