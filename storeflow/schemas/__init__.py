"""Pydantic request/response and workflow document schemas."""

from storeflow.schemas.health import HealthResponse, ReadinessResponse
from storeflow.schemas.workflow import (
    ActionSchema,
    ExecutionResultResponse,
    TriggerAcceptedResponse,
    TriggerTypeInfo,
    WorkflowDefinition,
    WorkflowStatsResponse,
)

__all__ = [
    "ActionSchema",
    "ExecutionResultResponse",
    "HealthResponse",
    "ReadinessResponse",
    "TriggerAcceptedResponse",
    "TriggerTypeInfo",
    "WorkflowDefinition",
    "WorkflowStatsResponse",
]
