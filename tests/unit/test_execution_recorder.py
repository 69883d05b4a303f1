"""Execution recorder: lastError packaging and failure tolerance."""

from unittest.mock import AsyncMock

from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.domain.exceptions import ExecutionCancelledError, WebhookFailedError


async def test_success_records_without_error(workflow_repo, clock, make_workflow):
    workflow = workflow_repo.add(make_workflow())
    await ExecutionRecorder(workflow_repo, clock=clock).record(workflow.id, True)

    assert workflow_repo.recorded == [(workflow.id, True, None)]
    assert workflow_repo.workflows[workflow.id].stats.last_executed_at == clock.now()


async def test_failure_packages_message_timestamp_and_traceback(
    workflow_repo, clock, make_workflow
):
    workflow = workflow_repo.add(make_workflow())
    try:
        raise WebhookFailedError(502, url="https://hooks.example")
    except WebhookFailedError as e:
        error = e

    await ExecutionRecorder(workflow_repo, clock=clock).record(workflow.id, False, error)

    (_, success, last_error), = workflow_repo.recorded
    assert not success
    assert last_error.message == "Webhook failed with status 502"
    assert last_error.timestamp == clock.now()
    assert "WebhookFailedError" in last_error.details


async def test_cancellation_is_a_failure_without_last_error(workflow_repo, make_workflow):
    workflow = workflow_repo.add(make_workflow())
    await ExecutionRecorder(workflow_repo).record(workflow.id, False, ExecutionCancelledError())

    assert workflow_repo.recorded == [(workflow.id, False, None)]
    stats = workflow_repo.workflows[workflow.id].stats
    assert stats.failed_executions == 1
    assert stats.last_error is None


async def test_repository_errors_are_swallowed():
    repository = AsyncMock()
    repository.record_execution.side_effect = RuntimeError("db down")

    await ExecutionRecorder(repository).record("wf-1", True)

    repository.record_execution.assert_awaited_once()
