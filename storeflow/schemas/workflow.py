"""Workflow definition schemas (wire format).

Definitions arrive as camelCase JSON from the admin API and are stored as
JSON documents. Actions use the ``{type, config, order, continueOnError}``
shape with a discriminated union on ``type``. WorkflowDefinition converts
to and from the domain entity; parsing then dumping is a round trip.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from storeflow.domain.entities.workflow import (
    Action,
    ApprovalAction,
    ConditionAction,
    CreateAction,
    DelayAction,
    EmailAction,
    LastError,
    NotificationAction,
    Schedule,
    Trigger,
    TriggerCondition,
    UpdateAction,
    WebhookAction,
    Workflow,
    WorkflowStats,
)
from storeflow.domain.enums import ConditionOperator, ScheduleType, TriggerType
from storeflow.domain.exceptions import ValidationException
from storeflow.domain.schedule import is_valid_cron, parse_time_of_day
from storeflow.shared.utils.generators import generate_cuid

if TYPE_CHECKING:
    from storeflow.application.dtos.workflow import ExecutionResult
    from storeflow.domain.trigger_catalog import TriggerInfo


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConditionSchema(_CamelModel):
    """Trigger or branch condition."""

    field: str = Field(..., min_length=1, description="Dotted path into the payload")
    operator: ConditionOperator
    value: Any = None

    def to_entity(self) -> TriggerCondition:
        return TriggerCondition(field=self.field, operator=self.operator, value=self.value)

    @classmethod
    def from_entity(cls, condition: TriggerCondition) -> ConditionSchema:
        return cls(field=condition.field, operator=condition.operator, value=condition.value)


class ScheduleSchema(_CamelModel):
    """Schedule record; fields are validated against ``type``."""

    type: ScheduleType
    time: str | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    cron_expression: str | None = None
    next_run: datetime | None = None

    @model_validator(mode="after")
    def validate_fields_for_type(self) -> ScheduleSchema:
        if self.type == ScheduleType.CRON:
            if not is_valid_cron(self.cron_expression):
                raise ValueError(
                    f"cronExpression is not a valid cron expression: {self.cron_expression!r}"
                )
            return self
        try:
            parse_time_of_day(self.time)
        except ValidationException as e:
            raise ValueError(e.message) from e
        if self.type == ScheduleType.WEEKLY and self.day_of_week is None:
            raise ValueError("weekly schedules require dayOfWeek (0 = Sunday)")
        if self.type == ScheduleType.MONTHLY and self.day_of_month is None:
            raise ValueError("monthly schedules require dayOfMonth (1-31)")
        return self

    def to_entity(self) -> Schedule:
        return Schedule(
            type=self.type,
            time=self.time,
            day_of_week=self.day_of_week,
            day_of_month=self.day_of_month,
            cron_expression=self.cron_expression,
            next_run=self.next_run,
        )

    @classmethod
    def from_entity(cls, schedule: Schedule) -> ScheduleSchema:
        return cls(
            type=schedule.type,
            time=schedule.time,
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
            cron_expression=schedule.cron_expression,
            next_run=schedule.next_run,
        )


class TriggerSchema(_CamelModel):
    type: TriggerType
    conditions: list[ConditionSchema] = Field(default_factory=list)
    schedule: ScheduleSchema | None = None

    @model_validator(mode="after")
    def validate_schedule_presence(self) -> TriggerSchema:
        if self.type == TriggerType.SCHEDULE and self.schedule is None:
            raise ValueError("schedule triggers require a schedule")
        if self.type != TriggerType.SCHEDULE and self.schedule is not None:
            raise ValueError("schedule is only allowed when trigger type is 'schedule'")
        return self


# ---- Action configs -------------------------------------------------------


class EmailConfig(_CamelModel):
    to: list[str] | str = Field(default_factory=list)
    subject: str = ""
    body: str = ""


class NotificationConfig(_CamelModel):
    user_id: str | None = None
    title: str = ""
    message: str = ""
    priority: str | None = None


class WebhookConfig(_CamelModel):
    url: str | None = None
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class UpdateConfig(_CamelModel):
    entity: str | None = None
    entity_id: str | None = None
    updates: dict[str, Any] = Field(default_factory=dict)


class CreateConfig(_CamelModel):
    entity_type: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ApprovalConfig(_CamelModel):
    approvers: list[str] = Field(default_factory=list)
    required_approvals: int = Field(default=1, ge=1)
    timeout: int | None = Field(default=None, ge=0, description="Minutes")


class DelayConfig(_CamelModel):
    duration: int = Field(default=0, ge=0, description="Milliseconds")


class ConditionConfig(_CamelModel):
    condition: ConditionSchema | None = None
    then_actions: list[ActionSchema] = Field(default_factory=list)
    else_actions: list[ActionSchema] = Field(default_factory=list)


# ---- Actions ---------------------------------------------------------------


class _ActionSchemaBase(_CamelModel):
    order: int = 0
    continue_on_error: bool = False


class EmailActionSchema(_ActionSchemaBase):
    type: Literal["email"]
    config: EmailConfig = Field(default_factory=EmailConfig)

    def to_entity(self) -> EmailAction:
        to = self.config.to
        return EmailAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            to=(to,) if isinstance(to, str) else tuple(to),
            subject=self.config.subject,
            body=self.config.body,
        )


class NotificationActionSchema(_ActionSchemaBase):
    type: Literal["notification"]
    config: NotificationConfig = Field(default_factory=NotificationConfig)

    def to_entity(self) -> NotificationAction:
        return NotificationAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            user_id=self.config.user_id,
            title=self.config.title,
            message=self.config.message,
            priority=self.config.priority,
        )


class WebhookActionSchema(_ActionSchemaBase):
    type: Literal["webhook"]
    config: WebhookConfig = Field(default_factory=WebhookConfig)

    def to_entity(self) -> WebhookAction:
        return WebhookAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            url=self.config.url,
            method=self.config.method,
            headers=dict(self.config.headers),
            body=self.config.body,
        )


class UpdateActionSchema(_ActionSchemaBase):
    type: Literal["update"]
    config: UpdateConfig = Field(default_factory=UpdateConfig)

    def to_entity(self) -> UpdateAction:
        return UpdateAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            entity=self.config.entity,
            entity_id=self.config.entity_id,
            updates=dict(self.config.updates),
        )


class CreateActionSchema(_ActionSchemaBase):
    type: Literal["create"]
    config: CreateConfig = Field(default_factory=CreateConfig)

    def to_entity(self) -> CreateAction:
        return CreateAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            entity_type=self.config.entity_type,
            data=dict(self.config.data),
        )


class ApprovalActionSchema(_ActionSchemaBase):
    type: Literal["approval"]
    config: ApprovalConfig = Field(default_factory=ApprovalConfig)

    def to_entity(self) -> ApprovalAction:
        return ApprovalAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            approvers=tuple(self.config.approvers),
            required_approvals=self.config.required_approvals,
            timeout_minutes=self.config.timeout,
        )


class DelayActionSchema(_ActionSchemaBase):
    type: Literal["delay"]
    config: DelayConfig = Field(default_factory=DelayConfig)

    def to_entity(self) -> DelayAction:
        return DelayAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            duration_ms=self.config.duration,
        )


class ConditionActionSchema(_ActionSchemaBase):
    type: Literal["condition"]
    config: ConditionConfig = Field(default_factory=ConditionConfig)

    def to_entity(self) -> ConditionAction:
        cond = self.config.condition
        return ConditionAction(
            order=self.order,
            continue_on_error=self.continue_on_error,
            condition=cond.to_entity() if cond is not None else None,
            then_actions=tuple(a.to_entity() for a in self.config.then_actions),
            else_actions=tuple(a.to_entity() for a in self.config.else_actions),
        )


ActionSchema = Annotated[
    Union[
        EmailActionSchema,
        NotificationActionSchema,
        WebhookActionSchema,
        UpdateActionSchema,
        CreateActionSchema,
        ApprovalActionSchema,
        DelayActionSchema,
        ConditionActionSchema,
    ],
    Field(discriminator="type"),
]

ConditionConfig.model_rebuild()
ConditionActionSchema.model_rebuild()


def action_to_schema(action: Action) -> _ActionSchemaBase:
    """Inverse of ``*ActionSchema.to_entity``."""
    base = {"order": action.order, "continue_on_error": action.continue_on_error}
    match action:
        case EmailAction():
            return EmailActionSchema(
                type="email",
                config=EmailConfig(to=list(action.to), subject=action.subject, body=action.body),
                **base,
            )
        case NotificationAction():
            return NotificationActionSchema(
                type="notification",
                config=NotificationConfig(
                    user_id=action.user_id,
                    title=action.title,
                    message=action.message,
                    priority=action.priority,
                ),
                **base,
            )
        case WebhookAction():
            return WebhookActionSchema(
                type="webhook",
                config=WebhookConfig(
                    url=action.url,
                    method=action.method,
                    headers=dict(action.headers),
                    body=action.body,
                ),
                **base,
            )
        case UpdateAction():
            return UpdateActionSchema(
                type="update",
                config=UpdateConfig(
                    entity=action.entity,
                    entity_id=action.entity_id,
                    updates=dict(action.updates),
                ),
                **base,
            )
        case CreateAction():
            return CreateActionSchema(
                type="create",
                config=CreateConfig(entity_type=action.entity_type, data=dict(action.data)),
                **base,
            )
        case ApprovalAction():
            return ApprovalActionSchema(
                type="approval",
                config=ApprovalConfig(
                    approvers=list(action.approvers),
                    required_approvals=action.required_approvals,
                    timeout=action.timeout_minutes,
                ),
                **base,
            )
        case DelayAction():
            return DelayActionSchema(
                type="delay", config=DelayConfig(duration=action.duration_ms), **base
            )
        case ConditionAction():
            return ConditionActionSchema(
                type="condition",
                config=ConditionConfig(
                    condition=(
                        ConditionSchema.from_entity(action.condition)
                        if action.condition is not None
                        else None
                    ),
                    then_actions=[_dump(a) for a in action.then_actions],
                    else_actions=[_dump(a) for a in action.else_actions],
                ),
                **base,
            )
    raise TypeError(f"Unsupported action: {type(action).__name__}")


def _dump(action: Action) -> dict[str, Any]:
    return action_to_schema(action).model_dump(by_alias=True)


def dump_actions(actions: tuple[Action, ...] | list[Action]) -> list[dict[str, Any]]:
    """Serialize domain actions to JSON-ready wire dicts."""
    return [
        action_to_schema(a).model_dump(by_alias=True, mode="json") for a in actions
    ]


def load_actions(raw: list[dict[str, Any]] | None) -> tuple[Action, ...]:
    """Parse wire dicts into domain actions."""
    return WorkflowActions.model_validate({"actions": raw or []}).to_entities()


class WorkflowActions(_CamelModel):
    """Wrapper used to validate a bare action list."""

    actions: list[ActionSchema] = Field(default_factory=list)

    def to_entities(self) -> tuple[Action, ...]:
        return tuple(a.to_entity() for a in self.actions)


# ---- Stats and workflow ----------------------------------------------------


class LastErrorSchema(_CamelModel):
    message: str
    timestamp: datetime
    details: str | None = None


class WorkflowStatsSchema(_CamelModel):
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    last_executed_at: datetime | None = None
    last_error: LastErrorSchema | None = None

    def to_entity(self) -> WorkflowStats:
        err = self.last_error
        return WorkflowStats(
            total_executions=self.total_executions,
            successful_executions=self.successful_executions,
            failed_executions=self.failed_executions,
            last_executed_at=self.last_executed_at,
            last_error=(
                LastError(message=err.message, timestamp=err.timestamp, details=err.details)
                if err is not None
                else None
            ),
        )

    @classmethod
    def from_entity(cls, stats: WorkflowStats) -> WorkflowStatsSchema:
        err = stats.last_error
        return cls(
            total_executions=stats.total_executions,
            successful_executions=stats.successful_executions,
            failed_executions=stats.failed_executions,
            last_executed_at=stats.last_executed_at,
            last_error=(
                LastErrorSchema(
                    message=err.message, timestamp=err.timestamp, details=err.details
                )
                if err is not None
                else None
            ),
        )


class WorkflowStatsResponse(WorkflowStatsSchema):
    """Stats plus derived success rate (percentage)."""

    success_rate: float = 0.0

    @classmethod
    def from_stats(cls, stats: WorkflowStats) -> WorkflowStatsResponse:
        base = WorkflowStatsSchema.from_entity(stats).model_dump()
        return cls(**base, success_rate=stats.success_rate)


class WorkflowDefinition(_CamelModel):
    """Full workflow document: identity, display, trigger, actions, flags, stats."""

    id: str | None = None
    store_id: str = Field(..., min_length=1)
    organization_id: str | None = None
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    version: int = Field(default=1, ge=1)
    trigger: TriggerSchema
    actions: list[ActionSchema] = Field(default_factory=list)
    is_active: bool = True
    is_deleted: bool = False
    stats: WorkflowStatsSchema = Field(default_factory=WorkflowStatsSchema)
    created_by: str | None = None
    created_at: datetime | None = None

    def to_entity(self) -> Workflow:
        """Build the domain entity; assigns a new id when the document has none."""
        schedule = self.trigger.schedule
        return Workflow(
            id=self.id or generate_cuid(),
            store_id=self.store_id,
            organization_id=self.organization_id,
            name=self.name,
            description=self.description,
            tags=tuple(self.tags),
            version=self.version,
            trigger=Trigger(
                type=self.trigger.type,
                conditions=tuple(c.to_entity() for c in self.trigger.conditions),
                schedule=schedule.to_entity() if schedule is not None else None,
            ),
            actions=tuple(a.to_entity() for a in self.actions),
            is_active=self.is_active,
            is_deleted=self.is_deleted,
            stats=self.stats.to_entity(),
            created_by=self.created_by,
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, workflow: Workflow) -> WorkflowDefinition:
        schedule = workflow.trigger.schedule
        return cls(
            id=workflow.id,
            store_id=workflow.store_id,
            organization_id=workflow.organization_id,
            name=workflow.name,
            description=workflow.description,
            tags=list(workflow.tags),
            version=workflow.version,
            trigger=TriggerSchema(
                type=workflow.trigger.type,
                conditions=[ConditionSchema.from_entity(c) for c in workflow.trigger.conditions],
                schedule=ScheduleSchema.from_entity(schedule) if schedule is not None else None,
            ),
            actions=[_dump(a) for a in workflow.actions],
            is_active=workflow.is_active,
            is_deleted=workflow.is_deleted,
            stats=WorkflowStatsSchema.from_entity(workflow.stats),
            created_by=workflow.created_by,
            created_at=workflow.created_at,
        )


class TriggerAcceptedResponse(_CamelModel):
    """Response for a queued manual run."""

    message: str = "Workflow triggered successfully"
    workflow_id: str


class ActionTraceResponse(_CamelModel):
    action_type: str
    status: str
    depth: int = 0
    error: str | None = None
    result: dict[str, Any] | None = None


class ExecutionResultResponse(_CamelModel):
    workflow_id: str
    success: bool
    error: str | None = None
    error_kind: str | None = None
    trace: list[ActionTraceResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ExecutionResult) -> ExecutionResultResponse:
        return cls(
            workflow_id=result.workflow_id,
            success=result.success,
            error=result.error,
            error_kind=result.error_kind.value if result.error_kind else None,
            trace=[
                ActionTraceResponse(
                    action_type=entry.action_type,
                    status=entry.status.value,
                    depth=entry.depth,
                    error=entry.error,
                    result=entry.result,
                )
                for entry in result.trace
            ],
        )


class TriggerTypeInfo(_CamelModel):
    type: TriggerType
    label: str
    description: str
    available_fields: list[str] = Field(default_factory=list)

    @classmethod
    def from_info(cls, info: TriggerInfo) -> TriggerTypeInfo:
        return cls(
            type=info.type,
            label=info.label,
            description=info.description,
            available_fields=list(info.available_fields),
        )
