from __future__ import annotations

from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clockpay.db.base import Base, IDMixin, TimestampMixin

if TYPE_CHECKING:
    from clockpay.models.user import User

GLOBAL_POLICY_ID = 1


class GlobalPolicy(IDMixin, TimestampMixin, Base):
    """Company-wide pay and auto-pause policy (single row, id=1)."""
    __tablename__ = "global_policy"

    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    auto_pause_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    auto_pause_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class WorkerOverride(IDMixin, TimestampMixin, Base):
    """Per-worker policy override; a null field inherits the global value."""
    __tablename__ = "worker_overrides"

    username: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    hourly_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    auto_pause_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    auto_pause_enabled: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    user: Mapped["User"] = relationship(back_populates="policy_override")
