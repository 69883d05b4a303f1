"""Scheduler: due detection, single launch per workflow, next-run advance and stop."""

import asyncio
from datetime import UTC, datetime

from storeflow.application.dtos.workflow import WebhookResponse
from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.application.services.scheduler import WorkflowScheduler
from storeflow.domain.entities.workflow import Schedule, WebhookAction
from storeflow.domain.enums import ScheduleType, TriggerType


def _daily(next_run: datetime) -> Schedule:
    return Schedule(type=ScheduleType.DAILY, time="09:00", next_run=next_run)


async def test_daily_workflow_fires_once_and_advances(
    dispatcher, workflow_repo, clock, make_workflow, broadcast
):
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.SCHEDULE, schedule=_daily(datetime(2025, 1, 2, 9, 0, tzinfo=UTC))
        )
    )
    scheduler = WorkflowScheduler(
        workflow_repo, dispatcher, clock=clock, broadcast_channel=broadcast
    )

    assert await scheduler.tick() == 0

    clock.advance(seconds=35)
    assert await scheduler.tick() == 1
    await scheduler.drain()
    assert await scheduler.tick() == 0

    assert [w for w, _, _ in workflow_repo.recorded] == [workflow.id]
    assert workflow_repo.next_runs[workflow.id] == datetime(2025, 1, 3, 9, 0, tzinfo=UTC)


async def test_inactive_and_unscheduled_workflows_are_ignored(
    dispatcher, workflow_repo, clock, make_workflow
):
    due = datetime(2025, 1, 2, 8, 0, tzinfo=UTC)
    workflow_repo.add(make_workflow(TriggerType.SCHEDULE, schedule=_daily(due), is_active=False))
    workflow_repo.add(make_workflow(TriggerType.SCHEDULE, schedule=_daily(due), is_deleted=True))
    workflow_repo.add(make_workflow(TriggerType.SCHEDULE, schedule=_daily(None)))

    scheduler = WorkflowScheduler(workflow_repo, dispatcher, clock=clock)

    assert await scheduler.tick() == 0


class HangingWebhookClient:
    def __init__(self) -> None:
        self.calls = 0

    async def request(self, method, url, headers, body) -> WebhookResponse:
        self.calls += 1
        await asyncio.Event().wait()
        return WebhookResponse(status_code=200)


async def test_running_workflow_is_not_relaunched_and_stop_cancels_it(
    workflow_repo, entity_store, clock, make_workflow
):
    client = HangingWebhookClient()
    interpreter = ActionInterpreter(entity_store=entity_store, webhook_client=client, clock=clock)
    dispatcher = WorkflowDispatcher(
        workflow_repo, interpreter, ExecutionRecorder(workflow_repo, clock=clock), workers=1
    )
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.SCHEDULE,
            schedule=_daily(datetime(2025, 1, 2, 8, 0, tzinfo=UTC)),
            actions=(WebhookAction(url="https://slow.example"),),
        )
    )
    scheduler = WorkflowScheduler(workflow_repo, dispatcher, clock=clock)

    assert await scheduler.tick() == 1
    await asyncio.sleep(0.01)
    assert await scheduler.tick() == 0
    assert scheduler.in_flight == 1

    await scheduler.stop()

    assert scheduler.in_flight == 0
    assert client.calls == 1
    # Cancellation counts as a failure without touching lastError.
    assert workflow_repo.recorded == [(workflow.id, False, None)]
    assert workflow_repo.next_runs[workflow.id] == datetime(2025, 1, 2, 9, 0, tzinfo=UTC)


async def test_scan_failure_is_logged_and_tick_continues(dispatcher, workflow_repo, clock):
    async def broken(now):
        raise RuntimeError("db down")

    workflow_repo.due_scheduled = broken
    scheduler = WorkflowScheduler(workflow_repo, dispatcher, clock=clock)

    assert await scheduler.tick() == 0


async def test_start_and_stop_loop(dispatcher, workflow_repo, clock, make_workflow):
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.SCHEDULE, schedule=_daily(datetime(2025, 1, 2, 8, 0, tzinfo=UTC))
        )
    )
    scheduler = WorkflowScheduler(workflow_repo, dispatcher, clock=clock, tick_seconds=30)

    await scheduler.start()
    for _ in range(5):
        await asyncio.sleep(0)
    await scheduler.stop()

    assert workflow.id in [w for w, _, _ in workflow_repo.recorded]
    assert clock.sleeps and clock.sleeps[0] == 30
