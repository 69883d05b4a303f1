"""Action interpreter: turns one action node into side effects.

``execute`` is a total match over the action variant. Action failures are
returned as ``ActionOutcome(ok=False, error=...)``; only task cancellation
(asyncio.CancelledError) escapes. ``run_sequence`` applies the
continue/abort rule and is used for the top-level action list and for
condition branches alike.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from storeflow.application.dtos.workflow import (
    ActionOutcome,
    ActionTrace,
    CancellationToken,
    ExecutionContext,
    MailMessage,
    SequenceResult,
)
from storeflow.application.interfaces.ports import IEntityStore, IMailer, IWebhookClient
from storeflow.application.services.conditions import condition_holds
from storeflow.application.services.templates import (
    resolve_mapping,
    resolve_template,
    resolve_value,
)
from storeflow.domain.entities.workflow import (
    Action,
    ApprovalAction,
    ConditionAction,
    CreateAction,
    DelayAction,
    EmailAction,
    NotificationAction,
    UpdateAction,
    WebhookAction,
    order_actions,
)
from storeflow.domain.enums import ActionStatus, ActionType, EntityKind
from storeflow.domain.exceptions import (
    ConfigMissingError,
    DefinitionError,
    ExecutionCancelledError,
    InternalActionError,
    InvalidTargetError,
    ResourceNotFoundException,
    WorkflowActionError,
)
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.utils.clock import IClock, SystemClock

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 16

_ACTION_TYPES: dict[type, ActionType] = {
    EmailAction: ActionType.EMAIL,
    NotificationAction: ActionType.NOTIFICATION,
    WebhookAction: ActionType.WEBHOOK,
    UpdateAction: ActionType.UPDATE,
    CreateAction: ActionType.CREATE,
    ApprovalAction: ActionType.APPROVAL,
    DelayAction: ActionType.DELAY,
    ConditionAction: ActionType.CONDITION,
}


def action_type_of(action: Action) -> str:
    kind = _ACTION_TYPES.get(type(action))
    return kind.value if kind else type(action).__name__


def _has_placeholder(value: str) -> bool:
    return "{{" in value and "}}" in value


T = TypeVar("T")


async def race_cancellation(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """Await ``awaitable`` unless ``token`` is cancelled first.

    On cancellation the pending work is cancelled and awaited, then
    ExecutionCancelledError is raised.
    """
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ExecutionCancelledError()
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()
    if work.done():
        return work.result()
    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    raise ExecutionCancelledError()


class ActionInterpreter:
    """Executes workflow actions against the injected ports.

    Args:
        entity_store: Business data access for update/create actions.
        mailer: Mail transport; None disables the email action.
        webhook_client: HTTP client for the webhook action.
        clock: Time source for delays and notification timestamps.
        max_depth: Maximum nesting of condition branches.
    """

    def __init__(
        self,
        entity_store: IEntityStore,
        webhook_client: IWebhookClient,
        mailer: IMailer | None = None,
        clock: IClock | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._entity_store = entity_store
        self._webhook_client = webhook_client
        self._mailer = mailer
        self._clock = clock or SystemClock()
        self._max_depth = max_depth

    async def execute(
        self,
        action: Action,
        payload: dict[str, Any],
        ctx: ExecutionContext,
        depth: int = 0,
    ) -> ActionOutcome:
        """Interpret one action; failures come back as values."""
        if ctx.cancellation.cancelled:
            return self._failed(action, ExecutionCancelledError())

        bindings = {"data": payload, "context": ctx.bindings()}
        try:
            match action:
                case EmailAction():
                    return await self._email(action, bindings, ctx)
                case NotificationAction():
                    return await self._notification(action, bindings, ctx)
                case WebhookAction():
                    return await self._webhook(action, bindings, ctx)
                case UpdateAction():
                    return await self._update(action, bindings, ctx)
                case CreateAction():
                    return await self._create(action, bindings, ctx)
                case DelayAction():
                    return await self._delay(action, ctx)
                case ConditionAction():
                    return await self._condition(action, payload, ctx, depth)
                case ApprovalAction():
                    return self._approval(action)
                case _:
                    raise DefinitionError(
                        f"Unsupported action: {type(action).__name__}", field="type"
                    )
        except WorkflowActionError as e:
            return self._failed(action, e)
        except Exception as e:
            error = InternalActionError(f"{type(e).__name__}: {e}")
            error.__cause__ = e
            logger.exception("Unexpected error in %s action", action_type_of(action))
            return self._failed(action, error)

    async def run_sequence(
        self,
        actions: Iterable[Action],
        payload: dict[str, Any],
        ctx: ExecutionContext,
        depth: int = 0,
    ) -> SequenceResult:
        """Run actions in order; stop at the first failure without continueOnError."""
        result = SequenceResult()
        for action in order_actions(list(actions)):
            outcome = await self.execute(action, payload, ctx, depth)
            result.trace.append(
                ActionTrace(
                    action_type=action_type_of(action),
                    status=outcome.status,
                    depth=depth,
                    error=outcome.error.message if outcome.error else None,
                    error_kind=outcome.error.kind if outcome.error else None,
                    result=outcome.result,
                )
            )
            result.trace.extend(outcome.nested)
            if outcome.ok:
                continue
            if action.continue_on_error:
                logger.info(
                    "Continuing after failed %s action: %s",
                    action_type_of(action),
                    outcome.error.message if outcome.error else "unknown error",
                )
                continue
            result.error = outcome.error
            break
        return result

    @staticmethod
    def _failed(action: Action, error: WorkflowActionError) -> ActionOutcome:
        if error.action_type is None:
            error.action_type = action_type_of(action)
        return ActionOutcome.failure(error)

    async def _email(
        self, action: EmailAction, bindings: dict[str, Any], ctx: ExecutionContext
    ) -> ActionOutcome:
        if self._mailer is None:
            raise ConfigMissingError("Email transport not configured", setting="MAIL_HOST")
        recipients = tuple(
            resolve_template(address, bindings) for address in action.to if address
        )
        if not recipients:
            raise DefinitionError("Email action requires at least one recipient", field="to")
        message = MailMessage(
            to=recipients,
            subject=resolve_template(action.subject, bindings),
            html=resolve_template(action.body, bindings),
        )
        await race_cancellation(self._mailer.send(message), ctx.cancellation)
        return ActionOutcome.success({"recipients": list(recipients)})

    async def _notification(
        self, action: NotificationAction, bindings: dict[str, Any], ctx: ExecutionContext
    ) -> ActionOutcome:
        channel = ctx.broadcast_channel
        if channel is None:
            logger.debug("No broadcast channel; skipping notification")
            return ActionOutcome.success({"delivered": False})
        user_id = resolve_template(action.user_id or "", bindings)
        if not user_id or _has_placeholder(user_id):
            raise InvalidTargetError(
                "Notification action requires a resolvable userId", target=user_id or None
            )
        notification = {
            "title": resolve_template(action.title, bindings),
            "message": resolve_template(action.message, bindings),
            "priority": action.priority or "normal",
            "timestamp": self._clock.now().isoformat(),
            "source": "workflow",
        }
        await race_cancellation(
            channel.emit(f"user:{user_id}", "notification", notification),
            ctx.cancellation,
        )
        return ActionOutcome.success({"userId": user_id, "delivered": True})

    async def _webhook(
        self, action: WebhookAction, bindings: dict[str, Any], ctx: ExecutionContext
    ) -> ActionOutcome:
        url = resolve_template(action.url or "", bindings)
        if not url:
            raise DefinitionError("Webhook action requires a url", field="url")
        headers = {"Content-Type": "application/json"}
        headers.update(
            {key: str(value) for key, value in resolve_mapping(action.headers, bindings).items()}
        )
        body: str | None
        if action.body is None:
            body = None
        elif isinstance(action.body, str):
            body = resolve_template(action.body, bindings)
        else:
            body = resolve_template(json.dumps(action.body), bindings)

        method = (action.method or "POST").upper()
        response = await race_cancellation(
            self._webhook_client.request(method, url, headers, body),
            ctx.cancellation,
        )
        return ActionOutcome.success({"status": response.status_code})

    async def _update(
        self, action: UpdateAction, bindings: dict[str, Any], ctx: ExecutionContext
    ) -> ActionOutcome:
        kind = EntityKind.parse(action.entity)
        entity_id = resolve_template(action.entity_id or "", bindings)
        if not entity_id or _has_placeholder(entity_id):
            raise InvalidTargetError(
                f"Update action requires a resolvable entityId for {kind.value}",
                target=entity_id or None,
            )
        patch = resolve_mapping(action.updates, bindings)
        try:
            await race_cancellation(
                self._entity_store.update(kind, entity_id, patch), ctx.cancellation
            )
        except ResourceNotFoundException as e:
            raise InvalidTargetError(e.message, target=entity_id) from e
        return ActionOutcome.success(
            {"entity": kind.value, "entityId": entity_id, "fields": sorted(patch)}
        )

    async def _create(
        self, action: CreateAction, bindings: dict[str, Any], ctx: ExecutionContext
    ) -> ActionOutcome:
        kind = EntityKind.parse(action.entity_type)
        data = {key: resolve_value(value, bindings) for key, value in action.data.items()}
        data["storeId"] = ctx.store_id
        created = await race_cancellation(
            self._entity_store.create(kind, data), ctx.cancellation
        )
        return ActionOutcome.success({"entity": kind.value, "entityId": created.get("id")})

    async def _delay(self, action: DelayAction, ctx: ExecutionContext) -> ActionOutcome:
        duration_ms = max(action.duration_ms or 0, 0)
        await race_cancellation(self._clock.sleep(duration_ms / 1000), ctx.cancellation)
        return ActionOutcome.success({"durationMs": duration_ms})

    async def _condition(
        self,
        action: ConditionAction,
        payload: dict[str, Any],
        ctx: ExecutionContext,
        depth: int,
    ) -> ActionOutcome:
        if action.condition is None:
            raise DefinitionError("Condition action requires a condition", field="condition")
        if depth + 1 > self._max_depth:
            raise DefinitionError(
                f"Condition nesting exceeds maximum depth of {self._max_depth}"
            )
        holds = condition_holds(action.condition, payload)
        branch = action.then_actions if holds else action.else_actions
        sequence = await self.run_sequence(branch, payload, ctx, depth + 1)
        result = {"branch": "then" if holds else "else"}
        if sequence.ok:
            return ActionOutcome(ok=True, result=result, nested=tuple(sequence.trace))
        return ActionOutcome(
            ok=False,
            status=ActionStatus.FAILED,
            result=result,
            error=sequence.error,
            nested=tuple(sequence.trace),
        )

    @staticmethod
    def _approval(action: ApprovalAction) -> ActionOutcome:
        logger.warning(
            "Approval actions are not executed yet; recording as unimplemented (%d approvers)",
            len(action.approvers),
        )
        return ActionOutcome.success(
            {"approvers": list(action.approvers)}, status=ActionStatus.UNIMPLEMENTED
        )
