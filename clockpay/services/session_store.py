"""Data access for work-session segments."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from clockpay.core.errors import NotFound
from clockpay.models.enums import SessionStatus
from clockpay.models.work_session import WorkSession
from clockpay.utils.decimals import ZERO, q2

HISTORY_LIMIT = 200


def _newest_first(query):
    return query.order_by(WorkSession.started_at.desc(), WorkSession.id.desc())


def get_session(db: Session, session_id: int, *, lock: bool = False) -> WorkSession:
    query = db.query(WorkSession).filter(WorkSession.id == session_id)
    if lock:
        query = query.with_for_update()
    row = query.first()
    if not row:
        raise NotFound(f"Work session {session_id} not found")
    return row


def find_open(db: Session, username: str) -> Optional[WorkSession]:
    """The worker's open segment (``ended_at IS NULL``), if any."""
    return (
        _newest_first(
            db.query(WorkSession).filter(
                WorkSession.username == username,
                WorkSession.ended_at.is_(None),
            )
        )
        .first()
    )


def has_open(db: Session, username: str) -> bool:
    return find_open(db, username) is not None


def find_latest(db: Session, username: str) -> Optional[WorkSession]:
    return _newest_first(db.query(WorkSession).filter(WorkSession.username == username)).first()


def list_for_worker(db: Session, username: str, *, limit: int = HISTORY_LIMIT) -> List[WorkSession]:
    return _newest_first(db.query(WorkSession).filter(WorkSession.username == username)).limit(limit).all()


def list_for_day(db: Session, username: str, day) -> List[WorkSession]:
    return (
        db.query(WorkSession)
        .filter(WorkSession.username == username, WorkSession.calendar_day == day)
        .order_by(WorkSession.started_at.asc(), WorkSession.id.asc())
        .all()
    )


def list_all_open(db: Session) -> List[WorkSession]:
    return _newest_first(db.query(WorkSession).filter(WorkSession.ended_at.is_(None))).all()


def list_overdue_active(db: Session, *, started_before: datetime) -> List[WorkSession]:
    return (
        db.query(WorkSession)
        .filter(
            WorkSession.status == SessionStatus.ACTIVE,
            WorkSession.ended_at.is_(None),
            WorkSession.started_at <= started_before,
        )
        .order_by(WorkSession.started_at.asc(), WorkSession.id.asc())
        .all()
    )


def create_open(db: Session, username: str, *, started_at: datetime) -> WorkSession:
    row = WorkSession(
        username=username,
        calendar_day=started_at.date(),
        started_at=started_at,
        ended_at=None,
        accrued_hours=ZERO,
        status=SessionStatus.ACTIVE,
    )
    db.add(row)
    db.flush()
    return row


def close(
    db: Session,
    row: WorkSession,
    *,
    ended_at: datetime,
    accrued_hours: Decimal,
    status: SessionStatus,
) -> WorkSession:
    row.ended_at = ended_at
    row.accrued_hours = q2(accrued_hours)
    row.status = status
    db.flush()
    return row


def set_status(db: Session, row: WorkSession, status: SessionStatus) -> WorkSession:
    row.status = status
    db.flush()
    return row


def sum_hours(
    db: Session,
    *,
    username: Optional[str] = None,
    statuses: Iterable[SessionStatus] = (SessionStatus.DONE,),
    started_from: Optional[datetime] = None,
    started_to: Optional[datetime] = None,
) -> Decimal:
    query = db.query(func.coalesce(func.sum(WorkSession.accrued_hours), 0)).filter(
        WorkSession.status.in_(list(statuses))
    )
    if username is not None:
        query = query.filter(WorkSession.username == username)
    if started_from is not None:
        query = query.filter(WorkSession.started_at >= started_from)
    if started_to is not None:
        query = query.filter(WorkSession.started_at <= started_to)
    return q2(query.scalar() or 0)