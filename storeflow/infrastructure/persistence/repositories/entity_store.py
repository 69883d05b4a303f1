"""SQL implementation of the entity store used by update/create actions."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeflow.domain.enums import EntityKind
from storeflow.domain.exceptions import ResourceNotFoundException, ValidationException
from storeflow.infrastructure.persistence.models.entity_record import EntityRecordModel
from storeflow.infrastructure.persistence.repositories.base import BaseRepository
from storeflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

# Keys owned by the row itself; a patch or create payload cannot move a record.
_RESERVED_KEYS = frozenset({"id", "storeId"})


def _to_dict(row: EntityRecordModel) -> dict[str, Any]:
    return {**row.attributes, "id": row.id, "storeId": row.store_id}


class SqlEntityStore(BaseRepository[EntityRecordModel]):
    """Entity records keyed by (kind, id), attributes stored as a JSON document."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session_factory, EntityRecordModel)

    async def _get_record(
        self, session: AsyncSession, kind: EntityKind, entity_id: str
    ) -> EntityRecordModel:
        result = await session.execute(
            select(EntityRecordModel).where(
                EntityRecordModel.id == entity_id,
                EntityRecordModel.kind == kind.value,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise ResourceNotFoundException(kind.value, entity_id)
        return row

    async def find(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        async with self._transaction() as session:
            return _to_dict(await self._get_record(session, kind, entity_id))

    async def update(
        self, kind: EntityKind, entity_id: str, patch: dict[str, Any]
    ) -> dict[str, Any]:
        """Shallow-merge top-level fields of ``patch`` into the record."""
        async with self._transaction() as session:
            row = await self._get_record(session, kind, entity_id)
            changes = {k: v for k, v in patch.items() if k not in _RESERVED_KEYS}
            # Reassign so the JSON column is marked dirty.
            row.attributes = {**row.attributes, **changes}
            await session.flush()
            logger.debug("Updated %s %s fields=%s", kind.value, entity_id, sorted(changes))
            return _to_dict(row)

    async def create(self, kind: EntityKind, data: dict[str, Any]) -> dict[str, Any]:
        store_id = data.get("storeId")
        if not store_id:
            raise ValidationException("storeId is required to create an entity", field="storeId")
        async with self._transaction() as session:
            row = EntityRecordModel(
                kind=kind.value,
                store_id=str(store_id),
                attributes={k: v for k, v in data.items() if k not in _RESERVED_KEYS},
            )
            session.add(row)
            await session.flush()
            logger.debug("Created %s %s", kind.value, row.id)
            return _to_dict(row)
