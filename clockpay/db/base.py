from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime; aware values pass through untouched.

    Every timestamp is stored as UTC, but SQLite hands it back without tzinfo.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class UTCDateTime(TypeDecorator):
    """``DateTime(timezone=True)`` that always loads as an aware UTC value."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[datetime]:
        return as_utc(value)

    def process_result_value(self, value: Any, dialect) -> Optional[datetime]:
        return as_utc(value)


# Constraint names are spelled out in alembic/versions; keep them in step.
NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "ix": "ix_%(column_0_label)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class IDMixin:
    id: Mapped[int] = mapped_column(primary_key=True, index=True)


def _stamp(*, touch_on_update: bool = False):
    return mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow if touch_on_update else None,
        server_default=func.now(),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = _stamp()
    updated_at: Mapped[datetime] = _stamp(touch_on_update=True)
