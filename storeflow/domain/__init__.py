"""Domain layer: workflow entities, enums, schedule rules and exceptions.

No dependencies on infrastructure or presentation.
"""

from storeflow.domain.entities import Workflow
from storeflow.domain.enums import (
    ActionType,
    ConditionOperator,
    EntityKind,
    ErrorKind,
    ScheduleType,
    TriggerType,
)
from storeflow.domain.exceptions import (
    ResourceNotFoundException,
    StoreflowException,
    ValidationException,
    WorkflowActionError,
)

__all__ = [
    "Workflow",
    "ActionType",
    "ConditionOperator",
    "EntityKind",
    "ErrorKind",
    "ScheduleType",
    "TriggerType",
    "ResourceNotFoundException",
    "StoreflowException",
    "ValidationException",
    "WorkflowActionError",
]
