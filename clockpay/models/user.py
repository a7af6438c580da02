from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clockpay.db.base import Base, IDMixin, TimestampMixin
from clockpay.models.enums import Role

if TYPE_CHECKING:
    from clockpay.models.policy import WorkerOverride
    from clockpay.models.salary_payment import SalaryPayment
    from clockpay.models.work_session import WorkSession


class User(IDMixin, TimestampMixin, Base):
    """A worker (or owner) identified by natural key ``username``."""
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.WORKER, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Append-only accumulators, bumped once per session close.
    cumulative_hours: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    cumulative_wage: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False, default=Decimal("0.00"))

    work_sessions: Mapped[List["WorkSession"]] = relationship(back_populates="user")
    payments: Mapped[List["SalaryPayment"]] = relationship(back_populates="user")
    policy_override: Mapped[Optional["WorkerOverride"]] = relationship(back_populates="user", uselist=False)
