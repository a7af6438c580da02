"""Payroll ledger: salary payments bounded by the wage accrued from completed sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from clockpay.core.errors import ExceedsRemainingBalance, InvalidArgument, NotFound
from clockpay.core.observability import payments_recorded_total, payments_rejected_total
from clockpay.db.base import as_utc
from clockpay.db.session import unit_of_work
from clockpay.models.salary_payment import SalaryPayment
from clockpay.services import session_store
from clockpay.services.policy import global_rate, require_worker, resolve_effective
from clockpay.utils.decimals import TWOPLACES, ZERO, q2, to_decimal
from clockpay.utils.periods import normalize_period, period_window

logger = logging.getLogger(__name__)

PAY_EPSILON = Decimal("1e-9")
REVISE_EPSILON = Decimal("1e-6")

MAX_PAGE_SIZE = 100
PAYMENT_SORTS = {
    "newest": (SalaryPayment.paid_at.desc(), SalaryPayment.id.desc()),
    "oldest": (SalaryPayment.paid_at.asc(), SalaryPayment.id.asc()),
    "amount_desc": (SalaryPayment.amount.desc(), SalaryPayment.id.desc()),
    "amount_asc": (SalaryPayment.amount.asc(), SalaryPayment.id.asc()),
}


@dataclass(frozen=True)
class Balance:
    hourly_rate: Decimal
    hours: Decimal
    accrued: Decimal
    paid: Decimal

    @property
    def remaining(self) -> Decimal:
        return q2(max(ZERO, self.accrued - self.paid))


def _positive_amount(value: Any) -> Decimal:
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidArgument("amount must be greater than zero")
    if amount != amount.quantize(TWOPLACES):
        raise InvalidArgument("amount must have at most two decimal places")
    return q2(amount)


def _paid_total(db: Session, username: str, *, exclude_id: Optional[int] = None) -> Decimal:
    query = db.query(func.coalesce(func.sum(SalaryPayment.amount), 0)).filter(SalaryPayment.username == username)
    if exclude_id is not None:
        query = query.filter(SalaryPayment.id != exclude_id)
    return q2(query.scalar() or 0)


def compute_balance(db: Session, username: str, *, exclude_payment_id: Optional[int] = None) -> Balance:
    """Accrued wage versus payments for one worker, inside the caller's transaction."""
    rate = resolve_effective(db, username).hourly_rate
    hours = session_store.sum_hours(db, username=username)
    return Balance(
        hourly_rate=rate,
        hours=hours,
        accrued=q2(hours * rate),
        paid=_paid_total(db, username, exclude_id=exclude_payment_id),
    )


def _get_payment(db: Session, payment_id: int, *, lock: bool = False) -> SalaryPayment:
    query = db.query(SalaryPayment).filter(SalaryPayment.id == payment_id)
    if lock:
        query = query.with_for_update()
    payment = query.first()
    if not payment:
        raise NotFound(f"Payment {payment_id} not found")
    return payment


def pay(
    db: Session,
    username: str,
    amount: Any,
    *,
    note: Optional[str] = None,
    paid_at: Optional[datetime] = None,
) -> SalaryPayment:
    amount = _positive_amount(amount)
    with unit_of_work(db):
        # Serialises concurrent payments for the same worker.
        require_worker(db, username, lock=True)
        balance = compute_balance(db, username)
        remaining = balance.remaining
        if amount - remaining > PAY_EPSILON:
            payments_rejected_total.labels(action="create").inc()
            logger.info(
                "payment_rejected",
                extra={"username": username, "amount": amount, "remaining": remaining},
            )
            raise ExceedsRemainingBalance(remaining)
        payment = SalaryPayment(
            username=username,
            amount=amount,
            note=note,
            paid_at=as_utc(paid_at) if paid_at else datetime.now(timezone.utc),
        )
        db.add(payment)
        db.flush()

    payments_recorded_total.labels(action="create").inc()
    logger.info(
        "payment_recorded",
        extra={
            "username": username,
            "payment_id": payment.id,
            "amount": amount,
            "remaining": q2(remaining - amount),
        },
    )
    return payment


def revise(db: Session, payment_id: int, changes: Mapping[str, Any]) -> SalaryPayment:
    """Patch a payment's amount and/or note.

    A new amount is checked against the balance with this payment's own prior
    amount left out of the paid side.
    """
    cleaned = {key: value for key, value in (changes or {}).items() if value is not None}
    unknown = set(cleaned) - {"amount", "note"}
    if unknown:
        raise InvalidArgument(f"Unknown payment fields: {', '.join(sorted(unknown))}")
    if not cleaned:
        raise InvalidArgument("At least one of amount or note must be provided")
    new_amount = _positive_amount(cleaned["amount"]) if "amount" in cleaned else None

    with unit_of_work(db):
        payment = _get_payment(db, payment_id, lock=True)
        require_worker(db, payment.username, lock=True)
        if new_amount is not None:
            balance = compute_balance(db, payment.username, exclude_payment_id=payment.id)
            if new_amount - balance.remaining > REVISE_EPSILON:
                payments_rejected_total.labels(action="revise").inc()
                raise ExceedsRemainingBalance(balance.remaining)
            payment.amount = new_amount
        if "note" in cleaned:
            payment.note = cleaned["note"]
        db.flush()

    payments_recorded_total.labels(action="revise").inc()
    logger.info(
        "payment_revised",
        extra={"username": payment.username, "payment_id": payment.id, "amount": payment.amount},
    )
    return payment


def remove(db: Session, payment_id: int) -> SalaryPayment:
    with unit_of_work(db):
        payment = _get_payment(db, payment_id, lock=True)
        db.delete(payment)
        db.flush()
    logger.info(
        "payment_removed",
        extra={"username": payment.username, "payment_id": payment_id, "amount": payment.amount},
    )
    return payment


def summary_for_worker(db: Session, username: str) -> Dict[str, Decimal]:
    with unit_of_work(db):
        balance = compute_balance(db, username)
    return {
        "hourly_rate": balance.hourly_rate,
        "hours_accrued_all_time": balance.hours,
        "wage_accrued_all_time": balance.accrued,
        "amount_paid_all_time": balance.paid,
        "amount_outstanding": balance.remaining,
    }


def summary_aggregate(db: Session, period: str = "all", *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Company-wide accrued versus paid, priced at the global rate."""
    normalized = normalize_period(period, allow_all=True)
    if normalized is None:
        raise InvalidArgument("period must be one of all, week, month")
    timestamp = as_utc(now) if now else datetime.now(timezone.utc)
    start, end = period_window(normalized, timestamp)

    with unit_of_work(db):
        rate = global_rate(db)
    hours = session_store.sum_hours(db, started_from=start, started_to=end if start else None)

    paid_query = db.query(func.coalesce(func.sum(SalaryPayment.amount), 0))
    if start is not None:
        paid_query = paid_query.filter(SalaryPayment.paid_at >= start, SalaryPayment.paid_at <= end)
    paid = q2(paid_query.scalar() or 0)

    accrued = q2(hours * rate)
    return {
        "period": normalized,
        "hourly_rate": rate,
        "hours": hours,
        "accrued": accrued,
        "paid": paid,
        "outstanding": q2(max(ZERO, accrued - paid)),
    }


def list_payments(
    db: Session,
    *,
    username: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    paid_from: Optional[datetime] = None,
    paid_to: Optional[datetime] = None,
    sort: str = "newest",
) -> Tuple[List[SalaryPayment], int]:
    if sort not in PAYMENT_SORTS:
        raise InvalidArgument(f"sort must be one of {', '.join(PAYMENT_SORTS)}")
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.query(SalaryPayment)
    if username:
        require_worker(db, username)
        query = query.filter(SalaryPayment.username == username)
    if paid_from:
        query = query.filter(SalaryPayment.paid_at >= as_utc(paid_from))
    if paid_to:
        query = query.filter(SalaryPayment.paid_at <= as_utc(paid_to))

    total = query.count()
    items = query.order_by(*PAYMENT_SORTS[sort]).offset((page - 1) * limit).limit(limit).all()
    return items, total
