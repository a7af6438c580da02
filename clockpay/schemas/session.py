"""Schemas for work-session endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field

from clockpay.models.enums import SessionStatus
from clockpay.schemas.base import ORMModel


class WorkSessionRead(ORMModel):
    id: int
    username: str
    calendar_day: date
    started_at: datetime
    ended_at: Optional[datetime] = None
    accrued_hours: Decimal
    status: SessionStatus


class SessionStartRequest(ORMModel):
    username: Optional[str] = Field(default=None, min_length=1, max_length=100)


class CurrentStatusRead(ORMModel):
    username: str
    status: str
    open_segment: Optional[WorkSessionRead] = None
    last_segment: Optional[WorkSessionRead] = None
    closed_hours_today: Decimal
    live_hours: Decimal
    elapsed_hours: Decimal


class RecapRead(ORMModel):
    username: str
    period: str
    total_hours: Decimal


class RangeTotals(ORMModel):
    hours: Decimal
    wage: Decimal


class WorkerSummaryRead(ORMModel):
    username: str
    status: str
    hourly_rate: Decimal
    last_segment: Optional[WorkSessionRead] = None
    totals: Dict[str, RangeTotals]


class OwnerCounts(ORMModel):
    workers: int = 0
    active: int = 0
    paused: int = 0


class OwnerSummaryRead(ORMModel):
    generated_at: datetime
    counts: OwnerCounts
    workers: List[WorkerSummaryRead]
