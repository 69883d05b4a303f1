"""Base repository: session-per-call transactions over one model."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storeflow.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Repository bound to a session factory rather than a request session.

    The engine calls repositories from background workers and the
    scheduler, so every public method opens its own short transaction via
    ``_transaction()``; commit on success, rollback on exception.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], model: type[ModelType]
    ) -> None:
        self._session_factory = session_factory
        self.model = model

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def _get_model(self, session: AsyncSession, entity_id: str) -> ModelType | None:
        """Return a single row by primary key within ``session``, or None."""
        model: Any = self.model
        result = await session.execute(select(self.model).where(model.id == entity_id))
        return result.scalar_one_or_none()
