"""Workflow repository: set queries over definitions and the stats write path."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeflow.domain.entities.workflow import (
    LastError,
    Schedule,
    Trigger,
    Workflow,
    WorkflowStats,
)
from storeflow.domain.enums import ScheduleType, TriggerType
from storeflow.domain.exceptions import ResourceNotFoundException, ValidationException
from storeflow.domain.schedule import calculate_next_run, is_valid_cron
from storeflow.infrastructure.persistence.models.workflow import WorkflowModel
from storeflow.infrastructure.persistence.repositories.base import BaseRepository
from storeflow.schemas.workflow import ConditionSchema, dump_actions, load_actions
from storeflow.shared.telemetry.logging import get_logger
from storeflow.shared.utils.clock import IClock, SystemClock
from storeflow.shared.utils.datetime import ensure_utc

logger = get_logger(__name__)


def _schedule_to_json(schedule: Schedule | None) -> dict[str, Any] | None:
    if schedule is None:
        return None
    return {
        "type": schedule.type.value,
        "time": schedule.time,
        "dayOfWeek": schedule.day_of_week,
        "dayOfMonth": schedule.day_of_month,
        "cronExpression": schedule.cron_expression,
    }


def _schedule_from_json(raw: dict[str, Any] | None, next_run: datetime | None) -> Schedule | None:
    if not raw:
        return None
    return Schedule(
        type=ScheduleType(raw["type"]),
        time=raw.get("time"),
        day_of_week=raw.get("dayOfWeek"),
        day_of_month=raw.get("dayOfMonth"),
        cron_expression=raw.get("cronExpression"),
        next_run=ensure_utc(next_run),
    )


def _to_entity(row: WorkflowModel) -> Workflow:
    last_error = None
    if row.last_error_message is not None:
        last_error = LastError(
            message=row.last_error_message,
            timestamp=ensure_utc(row.last_error_at) or ensure_utc(row.updated_at),
            details=row.last_error_details,
        )
    return Workflow(
        id=row.id,
        store_id=row.store_id,
        organization_id=row.organization_id,
        name=row.name,
        description=row.description,
        tags=tuple(row.tags or ()),
        version=row.version,
        trigger=Trigger(
            type=TriggerType(row.trigger_type),
            conditions=tuple(
                ConditionSchema.model_validate(c).to_entity()
                for c in row.trigger_conditions or ()
            ),
            schedule=_schedule_from_json(row.schedule, row.next_run),
        ),
        actions=load_actions(row.actions),
        is_active=row.is_active,
        is_deleted=row.is_deleted,
        stats=WorkflowStats(
            total_executions=row.total_executions,
            successful_executions=row.successful_executions,
            failed_executions=row.failed_executions,
            last_executed_at=ensure_utc(row.last_executed_at),
            last_error=last_error,
        ),
        created_by=row.created_by,
        created_at=ensure_utc(row.created_at),
    )


def _executable(query):
    return query.where(
        WorkflowModel.is_active.is_(True),
        WorkflowModel.is_deleted.is_(False),
    )


class WorkflowRepository(BaseRepository[WorkflowModel]):
    """SQL workflow repository.

    Args:
        session_factory: Async session factory; each call is one transaction.
        clock: Time source for next-run recomputation on save.
        timezone: Zone schedule wall-clock fields are interpreted in.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: IClock | None = None,
        timezone: str = "UTC",
    ) -> None:
        super().__init__(session_factory, WorkflowModel)
        self._clock = clock or SystemClock()
        self._zone = ZoneInfo(timezone)

    async def active_for(
        self, store_id: str, trigger_type: TriggerType | str
    ) -> list[Workflow]:
        """Executable workflows of a store for one trigger type, newest-created first."""
        trigger = TriggerType(trigger_type).value
        async with self._transaction() as session:
            result = await session.execute(
                _executable(select(WorkflowModel))
                .where(
                    WorkflowModel.store_id == store_id,
                    WorkflowModel.trigger_type == trigger,
                )
                .order_by(WorkflowModel.created_at.desc(), WorkflowModel.id.desc())
            )
            return [_to_entity(row) for row in result.scalars().all()]

    async def due_scheduled(self, now: datetime) -> list[Workflow]:
        """Executable schedule workflows whose next run is at or before ``now``."""
        async with self._transaction() as session:
            result = await session.execute(
                _executable(select(WorkflowModel))
                .where(
                    WorkflowModel.trigger_type == TriggerType.SCHEDULE.value,
                    WorkflowModel.next_run.is_not(None),
                    WorkflowModel.next_run <= ensure_utc(now),
                )
                .order_by(WorkflowModel.next_run, WorkflowModel.id)
            )
            return [_to_entity(row) for row in result.scalars().all()]

    async def list_for_store(
        self,
        store_id: str,
        trigger_type: TriggerType | str | None = None,
        is_active: bool | None = None,
    ) -> list[Workflow]:
        """Undeleted workflows of a store, newest-created first."""
        query = select(WorkflowModel).where(
            WorkflowModel.store_id == store_id,
            WorkflowModel.is_deleted.is_(False),
        )
        if trigger_type is not None:
            query = query.where(WorkflowModel.trigger_type == TriggerType(trigger_type).value)
        if is_active is not None:
            query = query.where(WorkflowModel.is_active.is_(is_active))
        async with self._transaction() as session:
            result = await session.execute(
                query.order_by(WorkflowModel.created_at.desc(), WorkflowModel.id.desc())
            )
            return [_to_entity(row) for row in result.scalars().all()]

    async def get(self, workflow_id: str) -> Workflow | None:
        async with self._transaction() as session:
            row = await self._get_model(session, workflow_id)
            return _to_entity(row) if row is not None else None

    async def record_execution(
        self,
        workflow_id: str,
        success: bool,
        error: LastError | None = None,
        executed_at: datetime | None = None,
    ) -> None:
        """Increment counters in one UPDATE; a failure with error overwrites lastError.

        Raises:
            ResourceNotFoundException: No workflow with that id.
        """
        values: dict[str, Any] = {
            "total_executions": WorkflowModel.total_executions + 1,
            "last_executed_at": ensure_utc(executed_at or self._clock.now()),
        }
        if success:
            values["successful_executions"] = WorkflowModel.successful_executions + 1
        else:
            values["failed_executions"] = WorkflowModel.failed_executions + 1
            if error is not None:
                values["last_error_message"] = error.message
                values["last_error_at"] = ensure_utc(error.timestamp)
                values["last_error_details"] = error.details
        async with self._transaction() as session:
            result = await session.execute(
                update(WorkflowModel)
                .where(WorkflowModel.id == workflow_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ResourceNotFoundException("Workflow", workflow_id)

    def _prepare_schedule(self, workflow: Workflow) -> datetime | None:
        """Validate the schedule and return the next run to persist."""
        if not workflow.is_scheduled:
            return None
        schedule = workflow.trigger.schedule
        if schedule is None:
            raise ValidationException("Schedule triggers require a schedule", field="schedule")
        if schedule.type == ScheduleType.CRON and not is_valid_cron(schedule.cron_expression):
            raise ValidationException(
                f"Invalid cron expression: {schedule.cron_expression!r}",
                field="cronExpression",
            )
        if not workflow.is_executable:
            return ensure_utc(schedule.next_run)
        next_run = calculate_next_run(self._clock.now(), schedule, self._zone)
        if next_run is None:
            raise ValidationException(
                f"Schedule of type {schedule.type.value} cannot produce a next run",
                field="schedule",
            )
        return next_run

    async def save(self, workflow: Workflow) -> Workflow:
        """Insert or update the definition; stats columns are never written here."""
        next_run = self._prepare_schedule(workflow)
        fields: dict[str, Any] = {
            "store_id": workflow.store_id,
            "organization_id": workflow.organization_id,
            "name": workflow.name,
            "description": workflow.description,
            "tags": list(workflow.tags),
            "version": workflow.version,
            "is_active": workflow.is_active,
            "is_deleted": workflow.is_deleted,
            "trigger_type": workflow.trigger.type.value,
            "trigger_conditions": [
                ConditionSchema.from_entity(c).model_dump(by_alias=True, mode="json")
                for c in workflow.trigger.conditions
            ],
            "schedule": _schedule_to_json(workflow.trigger.schedule),
            "next_run": next_run,
            "actions": dump_actions(workflow.actions),
            "created_by": workflow.created_by,
        }
        async with self._transaction() as session:
            row = await self._get_model(session, workflow.id)
            if row is None:
                row = WorkflowModel(id=workflow.id, **fields)
                if workflow.created_at is not None:
                    row.created_at = ensure_utc(workflow.created_at)
                session.add(row)
            else:
                for key, value in fields.items():
                    setattr(row, key, value)
            await session.flush()
            await session.refresh(row)
            logger.debug("Saved workflow %s (next run %s)", row.id, next_run)
            return _to_entity(row)

    async def set_next_run(self, workflow_id: str, next_run: datetime | None) -> None:
        async with self._transaction() as session:
            await session.execute(
                update(WorkflowModel)
                .where(WorkflowModel.id == workflow_id)
                .values(next_run=ensure_utc(next_run))
                .execution_options(synchronize_session=False)
            )

    async def set_active(self, workflow_id: str, is_active: bool) -> Workflow:
        """Activate or deactivate; activation recomputes the next run."""
        workflow = await self.get(workflow_id)
        if workflow is None or workflow.is_deleted:
            raise ResourceNotFoundException("Workflow", workflow_id)
        workflow.is_active = is_active
        return await self.save(workflow)

    async def soft_delete(self, workflow_id: str) -> None:
        """Mark deleted and inactive; rows are never physically removed."""
        async with self._transaction() as session:
            result = await session.execute(
                update(WorkflowModel)
                .where(WorkflowModel.id == workflow_id)
                .values(is_deleted=True, is_active=False)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ResourceNotFoundException("Workflow", workflow_id)
