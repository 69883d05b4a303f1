"""Generic business entity record. Table: entity_record.

Sales, products, customers, employees, stores and users are owned by the
POS services; the engine only needs keyed JSON documents it can patch and
create, so all kinds share one table discriminated by ``kind``.
"""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storeflow.infrastructure.persistence.database import Base
from storeflow.infrastructure.persistence.models.mixins import StoreScopedModel


class EntityRecordModel(StoreScopedModel, Base):
    __tablename__ = "entity_record"
    __table_args__ = (Index("ix_entity_record_kind_store", "kind", "store_id"),)

    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    attributes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
