"""Repositories over the workflow and entity_record tables."""

from storeflow.infrastructure.persistence.repositories.entity_store import SqlEntityStore
from storeflow.infrastructure.persistence.repositories.workflow_repo import WorkflowRepository

__all__ = ["SqlEntityStore", "WorkflowRepository"]
