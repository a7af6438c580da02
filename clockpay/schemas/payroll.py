"""
Payroll request/response schemas
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from clockpay.schemas.base import ORMModel


class SalaryPaymentCreate(ORMModel):
    username: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=2000)


class SalaryPaymentUpdate(ORMModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    note: Optional[str] = Field(default=None, max_length=2000)


class SalaryPaymentRead(ORMModel):
    id: int
    username: str
    amount: Decimal
    note: Optional[str] = None
    paid_at: datetime
    created_at: datetime


class SalaryPaymentPage(ORMModel):
    items: List[SalaryPaymentRead]
    total: int
    page: int
    limit: int


class WorkerPayrollSummary(ORMModel):
    username: str
    hourly_rate: Decimal
    hours_accrued_all_time: Decimal
    wage_accrued_all_time: Decimal
    amount_paid_all_time: Decimal
    amount_outstanding: Decimal


class PayrollAggregate(ORMModel):
    period: str
    hourly_rate: Decimal
    hours: Decimal
    accrued: Decimal
    paid: Decimal
    outstanding: Decimal
