"""Dispatcher: event matching, fan-out, isolation, stats recording and the queue."""

import asyncio

import pytest

from storeflow.application.dtos.workflow import WebhookResponse
from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.domain.entities.workflow import (
    EmailAction,
    NotificationAction,
    TriggerCondition,
    WebhookAction,
)
from storeflow.domain.enums import ConditionOperator, ErrorKind, TriggerType
BAD_URL = "http://bad.invalid/x"


def _notify() -> NotificationAction:
    return NotificationAction(order=2, user_id="{{context.userId}}", title="t", message="m")


async def test_low_stock_email_fan_out(dispatcher, workflow_repo, mailer, make_workflow, ctx):
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.PRODUCT_LOW_STOCK,
            actions=(
                EmailAction(
                    to=("ops@x.io",), subject="{{data.name}} low", body="{{data.quantity}} left"
                ),
            ),
        )
    )

    results = await dispatcher.dispatch("product.low_stock", {"name": "Widget", "quantity": 3}, ctx)

    assert [r.success for r in results] == [True]
    (message,) = mailer.sent
    assert (message.subject, message.html) == ("Widget low", "3 left")
    stats = workflow_repo.workflows[workflow.id].stats
    assert (stats.total_executions, stats.successful_executions) == (1, 1)


async def test_unmet_condition_does_not_fire(dispatcher, workflow_repo, make_workflow, ctx):
    workflow_repo.add(
        make_workflow(
            TriggerType.SALE_COMPLETED,
            conditions=(TriggerCondition("total", ConditionOperator.GREATER_THAN, 100),),
            actions=(_notify(),),
        )
    )

    results = await dispatcher.dispatch(TriggerType.SALE_COMPLETED, {"total": 50}, ctx)

    assert results == []
    assert workflow_repo.recorded == []


@pytest.mark.parametrize(("vip", "fires"), [(True, True), (False, False)])
async def test_conditions_are_and_combined(
    dispatcher, workflow_repo, make_workflow, ctx, vip, fires
):
    workflow_repo.add(
        make_workflow(
            TriggerType.SALE_COMPLETED,
            conditions=(
                TriggerCondition("total", ConditionOperator.GREATER_OR_EQUAL, 100),
                TriggerCondition("customer.vip", ConditionOperator.EQUALS, True),
            ),
        )
    )

    results = await dispatcher.dispatch(
        "sale.completed", {"total": 150, "customer": {"vip": vip}}, ctx
    )

    assert len(results) == (1 if fires else 0)


async def test_failed_action_aborts_and_records_last_error(
    dispatcher, workflow_repo, webhook_client, broadcast, make_workflow, ctx
):
    webhook_client.statuses[BAD_URL] = 500
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.SALE_CREATED,
            actions=(WebhookAction(order=1, url=BAD_URL), _notify()),
        )
    )

    (result,) = await dispatcher.dispatch("sale.created", {}, ctx)

    assert not result.success
    assert result.error_kind == ErrorKind.TRANSIENT
    assert broadcast.emitted == []
    stats = workflow_repo.workflows[workflow.id].stats
    assert (stats.total_executions, stats.failed_executions) == (1, 1)
    assert "500" in stats.last_error.message
    assert stats.last_error.details


async def test_continue_on_error_lets_execution_succeed(
    dispatcher, workflow_repo, webhook_client, broadcast, make_workflow, ctx
):
    webhook_client.statuses[BAD_URL] = 500
    workflow = workflow_repo.add(
        make_workflow(
            TriggerType.SALE_CREATED,
            actions=(WebhookAction(order=1, url=BAD_URL, continue_on_error=True), _notify()),
        )
    )

    (result,) = await dispatcher.dispatch("sale.created", {}, ctx)

    assert result.success
    assert len(broadcast.emitted) == 1
    assert workflow_repo.workflows[workflow.id].stats.successful_executions == 1


async def test_matching_workflows_run_newest_first_and_in_isolation(
    dispatcher, workflow_repo, webhook_client, make_workflow, ctx
):
    webhook_client.statuses[BAD_URL] = 500
    older = workflow_repo.add(
        make_workflow(TriggerType.CUSTOMER_CREATED, actions=(WebhookAction(url=BAD_URL),))
    )
    newer = workflow_repo.add(
        make_workflow(
            TriggerType.CUSTOMER_CREATED, actions=(WebhookAction(url="https://ok.example"),)
        )
    )
    workflow_repo.add(make_workflow(TriggerType.CUSTOMER_CREATED, store_id="store-2"))
    workflow_repo.add(make_workflow(TriggerType.CUSTOMER_CREATED, is_active=False))

    results = await dispatcher.dispatch("customer.created", {}, ctx)

    assert [(r.workflow_id, r.success) for r in results] == [
        (newer.id, True),
        (older.id, False),
    ]
    assert sorted(w for w, _, _ in workflow_repo.recorded) == sorted([older.id, newer.id])


async def test_repository_failure_is_logged_and_swallowed(dispatcher, workflow_repo, ctx):
    async def broken(store_id, trigger_type):
        raise RuntimeError("db down")

    workflow_repo.active_for = broken
    assert await dispatcher.dispatch("sale.created", {}, ctx) == []


async def test_trigger_enqueues_and_workers_execute(
    dispatcher, workflow_repo, make_workflow, ctx
):
    workflow = workflow_repo.add(make_workflow(TriggerType.SALE_CREATED, actions=(_notify(),)))

    assert dispatcher.trigger("sale.created", {"id": "s-1"}, ctx) is True
    await dispatcher.join()

    assert workflow_repo.recorded == [(workflow.id, True, None)]


async def test_trigger_workflow_runs_one_workflow(dispatcher, workflow_repo, make_workflow, ctx):
    target = workflow_repo.add(make_workflow(TriggerType.MANUAL))
    workflow_repo.add(make_workflow(TriggerType.MANUAL))
    inactive = workflow_repo.add(make_workflow(TriggerType.MANUAL, is_active=False))

    dispatcher.trigger_workflow(target.id, None, ctx)
    dispatcher.trigger_workflow(inactive.id, None, ctx)
    await dispatcher.join()

    assert [w for w, _, _ in workflow_repo.recorded] == [target.id]


async def test_trigger_before_start_drops_the_event(workflow_repo, interpreter, ctx):
    dispatcher = WorkflowDispatcher(workflow_repo, interpreter, ExecutionRecorder(workflow_repo))

    assert dispatcher.trigger("sale.created", {}, ctx) is False
    assert dispatcher.trigger_workflow("wf-1", None, ctx) is False
    assert dispatcher.pending == 0


async def test_full_queue_drops_events(workflow_repo, interpreter, ctx):
    dispatcher = WorkflowDispatcher(
        workflow_repo, interpreter, ExecutionRecorder(workflow_repo), workers=1, queue_size=1
    )
    await dispatcher.start()
    try:
        assert dispatcher.trigger("sale.created", {}, ctx) is True
        assert dispatcher.trigger("sale.created", {}, ctx) is False
    finally:
        await dispatcher.stop()


class HangingWebhookClient:
    def __init__(self) -> None:
        self.started = asyncio.Event()

    async def request(self, method, url, headers, body) -> WebhookResponse:
        self.started.set()
        await asyncio.Event().wait()
        return WebhookResponse(status_code=200)


async def test_stop_records_in_flight_execution_as_cancelled(
    workflow_repo, entity_store, clock, make_workflow, ctx
):
    client = HangingWebhookClient()
    interpreter = ActionInterpreter(entity_store=entity_store, webhook_client=client, clock=clock)
    dispatcher = WorkflowDispatcher(
        workflow_repo, interpreter, ExecutionRecorder(workflow_repo, clock=clock), workers=1
    )
    workflow = workflow_repo.add(
        make_workflow(TriggerType.SALE_CREATED, actions=(WebhookAction(url="https://slow"),))
    )
    await dispatcher.start()
    dispatcher.trigger("sale.created", {}, ctx)
    await asyncio.wait_for(client.started.wait(), timeout=1)

    await dispatcher.stop()

    assert workflow_repo.recorded == [(workflow.id, False, None)]
    assert workflow_repo.workflows[workflow.id].stats.failed_executions == 1
    assert not dispatcher.running


async def test_stop_discards_queued_jobs(workflow_repo, interpreter, make_workflow, ctx):
    dispatcher = WorkflowDispatcher(
        workflow_repo, interpreter, ExecutionRecorder(workflow_repo), workers=1
    )
    workflow_repo.add(make_workflow(TriggerType.SALE_CREATED))
    await dispatcher.start()
    for _ in range(3):
        dispatcher.trigger("sale.created", {}, ctx)

    await dispatcher.stop()

    assert dispatcher.pending == 0
    await asyncio.wait_for(dispatcher.join(), timeout=1)
    assert workflow_repo.recorded == []


async def test_oversized_number_in_payload_does_not_block_siblings(
    dispatcher, workflow_repo, make_workflow, ctx
):
    workflow_repo.add(
        make_workflow(
            TriggerType.SALE_CREATED,
            conditions=(TriggerCondition("total", ConditionOperator.EQUALS, 5),),
        )
    )
    sibling = workflow_repo.add(make_workflow(TriggerType.SALE_CREATED))

    results = await dispatcher.dispatch("sale.created", {"total": 10**400}, ctx)

    assert [r.workflow_id for r in results] == [sibling.id]
    assert workflow_repo.recorded == [(sibling.id, True, None)]


async def test_failing_condition_skips_only_its_workflow(
    dispatcher, workflow_repo, make_workflow, ctx, monkeypatch
):
    from storeflow.application.services import dispatcher as dispatcher_module

    broken = workflow_repo.add(
        make_workflow(
            TriggerType.SALE_CREATED,
            conditions=(TriggerCondition("total", ConditionOperator.EQUALS, 5),),
        )
    )
    sibling = workflow_repo.add(make_workflow(TriggerType.SALE_CREATED))
    real_conditions_hold = dispatcher_module.conditions_hold

    def conditions_hold(conditions, payload):
        if conditions == broken.trigger.conditions:
            raise ValueError("bad operand")
        return real_conditions_hold(conditions, payload)

    monkeypatch.setattr(dispatcher_module, "conditions_hold", conditions_hold)

    results = await dispatcher.dispatch("sale.created", {"total": 5}, ctx)

    assert [r.workflow_id for r in results] == [sibling.id]
    assert workflow_repo.recorded == [(sibling.id, True, None)]
