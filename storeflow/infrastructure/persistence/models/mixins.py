"""SQLAlchemy mixins for common model patterns.

Provides: CuidMixin, StoreMixin, TimestampMixin and the combined
StoreScopedModel.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from storeflow.shared.utils.datetime import utc_now
from storeflow.shared.utils.generators import generate_cuid


class CuidMixin:
    """Mixin for models using CUID as primary key. Provides id with default generate_cuid."""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class StoreMixin:
    """Mixin for store-scoped rows. Stores live in another service, so no FK."""

    @declared_attr
    def store_id(cls) -> Mapped[str]:
        return mapped_column(String, nullable=False, index=True)


class TimestampMixin:
    """Mixin for created_at and updated_at (timezone-aware).

    The Python-side default keeps microsecond precision so "newest created
    first" ordering is stable even where the server clock is coarse.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            nullable=False,
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            onupdate=utc_now,
            nullable=False,
        )


class StoreScopedModel(CuidMixin, StoreMixin, TimestampMixin):
    """Combined mixin: CUID + store_id + created_at/updated_at."""

    __abstract__ = True
