"""ORM models. Import this package so Alembic and create_all see every table."""

from storeflow.infrastructure.persistence.models.entity_record import EntityRecordModel
from storeflow.infrastructure.persistence.models.workflow import WorkflowModel

__all__ = ["EntityRecordModel", "WorkflowModel"]
