"""Domain entities (persistence-independent)."""

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
    order_actions,
)

__all__ = [
    "Action",
    "ApprovalAction",
    "ConditionAction",
    "CreateAction",
    "DelayAction",
    "EmailAction",
    "LastError",
    "NotificationAction",
    "Schedule",
    "Trigger",
    "TriggerCondition",
    "UpdateAction",
    "WebhookAction",
    "Workflow",
    "WorkflowStats",
    "order_actions",
]
