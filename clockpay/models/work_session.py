"""WorkSession model: one clocked segment of a worker's time."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clockpay.db.base import Base, IDMixin, TimestampMixin
from clockpay.models.enums import SessionStatus

if TYPE_CHECKING:
    from clockpay.models.user import User


class WorkSession(IDMixin, TimestampMixin, Base):
    __tablename__ = "work_sessions"
    __table_args__ = (
        # At most one open segment per worker.
        Index(
            "uq_work_sessions_open_per_worker",
            "username",
            unique=True,
            postgresql_where=text("ended_at IS NULL"),
            sqlite_where=text("ended_at IS NULL"),
        ),
        Index("ix_work_sessions_username_started_at", "username", "started_at"),
    )

    username: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    calendar_day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accrued_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, name="session_status"),
        nullable=False,
        default=SessionStatus.ACTIVE,
        index=True,
    )

    user: Mapped["User"] = relationship(back_populates="work_sessions")
