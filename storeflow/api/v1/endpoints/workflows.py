"""Workflow API: thin routes delegating to the WorkflowEngine.

Definitions are created and edited by the admin service; this surface only
lists trigger types, runs workflows and reports their stats.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from storeflow.api.v1.dependencies import (
    StoreScope,
    get_engine,
    get_execution_context,
    get_store_scope,
)
from storeflow.application.dtos.workflow import ExecutionContext
from storeflow.application.services.workflow_engine import WorkflowEngine
from storeflow.domain.trigger_catalog import AVAILABLE_TRIGGERS
from storeflow.schemas.workflow import (
    ExecutionResultResponse,
    TriggerAcceptedResponse,
    TriggerTypeInfo,
    WorkflowStatsResponse,
)

router = APIRouter()

Payload = Annotated[dict[str, Any] | None, Body()]


@router.get("/triggers/available", response_model=list[TriggerTypeInfo])
def list_available_triggers() -> list[TriggerTypeInfo]:
    """Trigger types authors can pick, with the payload fields each provides."""
    return [TriggerTypeInfo.from_info(info) for info in AVAILABLE_TRIGGERS]


@router.post(
    "/{workflow_id}/trigger",
    response_model=TriggerAcceptedResponse,
    status_code=202,
)
async def trigger_workflow(
    workflow_id: str,
    engine: Annotated[WorkflowEngine, Depends(get_engine)],
    ctx: Annotated[ExecutionContext, Depends(get_execution_context)],
    payload: Payload = None,
) -> TriggerAcceptedResponse:
    """Queue one run of an active workflow with the request body as ``data``."""
    workflow = await engine.run_manual(workflow_id, payload, ctx)
    return TriggerAcceptedResponse(workflow_id=workflow.id)


@router.post("/{workflow_id}/test", response_model=ExecutionResultResponse)
async def test_workflow(
    workflow_id: str,
    engine: Annotated[WorkflowEngine, Depends(get_engine)],
    ctx: Annotated[ExecutionContext, Depends(get_execution_context)],
    payload: Payload = None,
) -> ExecutionResultResponse:
    """Run the workflow now with sample data and return its outcome and trace.

    Test runs are real executions: side effects happen and stats are updated.
    """
    result = await engine.test_run(workflow_id, payload, ctx)
    return ExecutionResultResponse.from_result(result)


@router.get("/{workflow_id}/stats", response_model=WorkflowStatsResponse)
async def get_workflow_stats(
    workflow_id: str,
    engine: Annotated[WorkflowEngine, Depends(get_engine)],
    scope: Annotated[StoreScope, Depends(get_store_scope)],
) -> WorkflowStatsResponse:
    """Execution counters, success rate and the last error."""
    stats = await engine.stats(workflow_id, scope.store_id, scope.organization_id)
    return WorkflowStatsResponse.from_stats(stats)
