"""
Payroll endpoints

Salary payments are recorded against a worker and may never exceed the wage
accrued from completed sessions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clockpay.core import rbac
from clockpay.core.deps import get_current_user, require_owner
from clockpay.core.errors import success_envelope
from clockpay.db.session import get_db
from clockpay.models.user import User
from clockpay.schemas.payroll import (
    PayrollAggregate,
    SalaryPaymentCreate,
    SalaryPaymentPage,
    SalaryPaymentRead,
    SalaryPaymentUpdate,
    WorkerPayrollSummary,
)
from clockpay.services import payroll as payroll_service

router = APIRouter(prefix="/api/payroll", tags=["payroll"])


# ============ PAYMENTS ============

@router.post("/payments")
def create_payment(
    payload: SalaryPaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    payment = payroll_service.pay(db, payload.username, payload.amount, note=payload.note)
    return success_envelope(SalaryPaymentRead.model_validate(payment), message="Payment recorded")


@router.get("/payments")
def list_payments(
    username: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    paid_from: Optional[datetime] = Query(None),
    paid_to: Optional[datetime] = Query(None),
    sort: str = Query("newest"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    # Workers only ever see their own payments.
    if not rbac.is_elevated(current_user):
        username = current_user.username
    items, total = payroll_service.list_payments(
        db,
        username=username,
        page=page,
        limit=limit,
        paid_from=paid_from,
        paid_to=paid_to,
        sort=sort,
    )
    data = SalaryPaymentPage(
        items=[SalaryPaymentRead.model_validate(item) for item in items],
        total=total,
        page=page,
        limit=limit,
    )
    return success_envelope(data)


@router.patch("/payments/{payment_id}")
def update_payment(
    payment_id: int,
    payload: SalaryPaymentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    payment = payroll_service.revise(db, payment_id, payload.model_dump(exclude_unset=True))
    return success_envelope(SalaryPaymentRead.model_validate(payment), message="Payment updated")


@router.delete("/payments/{payment_id}")
def delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    payroll_service.remove(db, payment_id)
    return success_envelope({"id": payment_id}, message="Payment deleted")


# ============ SUMMARIES ============

@router.get("/summary")
def payroll_summary(
    period: str = Query("all"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    return success_envelope(PayrollAggregate(**payroll_service.summary_aggregate(db, period)))


@router.get("/workers/{username}/summary")
def worker_payroll_summary(
    username: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    rbac.ensure_can_act_for(current_user, username)
    summary = payroll_service.summary_for_worker(db, username)
    return success_envelope(WorkerPayrollSummary(username=username, **summary))
