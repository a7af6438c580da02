from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clockpay.db.base import Base, IDMixin, TimestampMixin, utcnow

if TYPE_CHECKING:
    from clockpay.models.user import User


class SalaryPayment(IDMixin, TimestampMixin, Base):
    __tablename__ = "salary_payments"

    username: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("users.username", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    user: Mapped["User"] = relationship(back_populates="payments")
