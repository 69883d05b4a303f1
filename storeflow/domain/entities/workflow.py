"""Workflow domain entity.

A workflow is a tenant rule: one trigger (event type + AND-combined
conditions, or a schedule) and an ordered program of actions. Actions are
a tagged variant: one frozen dataclass per kind, matched exhaustively by
the interpreter. ConditionAction nests further actions in its branches.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from storeflow.domain.enums import ConditionOperator, ScheduleType, TriggerType


@dataclass(frozen=True)
class TriggerCondition:
    """``{field, operator, value}``; field is a dotted path into the payload."""

    field: str
    operator: ConditionOperator
    value: Any = None


@dataclass(frozen=True)
class Schedule:
    """Time-based trigger. Only the fields relevant to ``type`` are read."""

    type: ScheduleType
    time: str | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None
    cron_expression: str | None = None
    next_run: datetime | None = None


@dataclass(frozen=True)
class Trigger:
    type: TriggerType
    conditions: tuple[TriggerCondition, ...] = ()
    schedule: Schedule | None = None


@dataclass(frozen=True)
class _ActionBase:
    """Fields shared by every action kind."""

    order: int = 0
    continue_on_error: bool = False


@dataclass(frozen=True)
class EmailAction(_ActionBase):
    to: tuple[str, ...] = ()
    subject: str = ""
    body: str = ""


@dataclass(frozen=True)
class NotificationAction(_ActionBase):
    user_id: str | None = None
    title: str = ""
    message: str = ""
    priority: str | None = None


@dataclass(frozen=True)
class WebhookAction(_ActionBase):
    url: str | None = None
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass(frozen=True)
class UpdateAction(_ActionBase):
    entity: str | None = None
    entity_id: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreateAction(_ActionBase):
    entity_type: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ApprovalAction(_ActionBase):
    approvers: tuple[str, ...] = ()
    required_approvals: int = 1
    timeout_minutes: int | None = None


@dataclass(frozen=True)
class DelayAction(_ActionBase):
    duration_ms: int = 0


@dataclass(frozen=True)
class ConditionAction(_ActionBase):
    # None is accepted here and rejected at interpretation (DefinitionError).
    condition: TriggerCondition | None = None
    then_actions: tuple[Action, ...] = ()
    else_actions: tuple[Action, ...] = ()


Action = (
    EmailAction
    | NotificationAction
    | WebhookAction
    | UpdateAction
    | CreateAction
    | ApprovalAction
    | DelayAction
    | ConditionAction
)


def order_actions(actions: tuple[Action, ...] | list[Action]) -> list[Action]:
    """Return actions in non-decreasing ``order``; ties keep insertion position."""
    return sorted(actions, key=lambda action: action.order)


@dataclass(frozen=True)
class LastError:
    """Sticky diagnostic of the most recent failed execution."""

    message: str
    timestamp: datetime
    details: str | None = None


@dataclass(frozen=True)
class WorkflowStats:
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    last_executed_at: datetime | None = None
    last_error: LastError | None = None

    @property
    def success_rate(self) -> float:
        """Percentage of successful executions, rounded to two decimals."""
        if self.total_executions == 0:
            return 0.0
        return round(self.successful_executions / self.total_executions * 100, 2)


@dataclass
class Workflow:
    """Domain entity for a workflow definition plus its execution stats."""

    id: str
    store_id: str
    name: str
    trigger: Trigger
    actions: tuple[Action, ...] = ()
    organization_id: str | None = None
    description: str | None = None
    tags: tuple[str, ...] = ()
    version: int = 1
    is_active: bool = True
    is_deleted: bool = False
    stats: WorkflowStats = field(default_factory=WorkflowStats)
    created_by: str | None = None
    created_at: datetime | None = None

    @property
    def is_executable(self) -> bool:
        """Return whether the dispatcher and scheduler may run this workflow."""
        return self.is_active and not self.is_deleted

    @property
    def is_scheduled(self) -> bool:
        return self.trigger.type == TriggerType.SCHEDULE

    def belongs_to_store(self, store_id: str) -> bool:
        return self.store_id == store_id

    def ordered_actions(self) -> list[Action]:
        return order_actions(self.actions)
