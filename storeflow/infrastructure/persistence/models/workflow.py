"""Workflow ORM model. Table: workflow.

Trigger conditions, the schedule and actions are JSON documents in their
wire (camelCase) form. ``next_run`` and the stats counters are real
columns so the scheduler can query them and the recorder can increment
them atomically.
"""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storeflow.infrastructure.persistence.database import Base
from storeflow.infrastructure.persistence.models.mixins import StoreScopedModel


class WorkflowModel(StoreScopedModel, Base):
    """Workflow definition plus execution stats."""

    __tablename__ = "workflow"
    __table_args__ = (
        Index("ix_workflow_store_trigger_active", "store_id", "trigger_type", "is_active"),
        Index("ix_workflow_due", "trigger_type", "next_run"),
    )

    organization_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=sa.text("1")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sa.false()
    )

    trigger_type: Mapped[str] = mapped_column(String, nullable=False)
    trigger_conditions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    schedule: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    next_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    total_executions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    successful_executions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    failed_executions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    last_executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
