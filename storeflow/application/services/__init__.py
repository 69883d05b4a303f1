"""Workflow engine services: templates, conditions, interpreter, dispatcher, scheduler."""

from storeflow.application.services.action_interpreter import ActionInterpreter
from storeflow.application.services.dispatcher import WorkflowDispatcher
from storeflow.application.services.execution_recorder import ExecutionRecorder
from storeflow.application.services.scheduler import WorkflowScheduler
from storeflow.application.services.workflow_engine import WorkflowEngine

__all__ = [
    "ActionInterpreter",
    "ExecutionRecorder",
    "WorkflowDispatcher",
    "WorkflowEngine",
    "WorkflowScheduler",
]
