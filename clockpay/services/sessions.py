"""Work-session state machine.

A worker's clocked time is a log of segments. ``start`` opens a segment,
``pause`` closes it as PAUSED, ``resume`` opens a fresh segment and ``end``
closes the open segment as DONE and accrues the wage. Current status and
elapsed time are always folded from the log on read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from clockpay.core import rbac
from clockpay.core.errors import Conflict, ConflictingSession, InvalidArgument, InvalidTransition
from clockpay.core.observability import sessions_closed_total
from clockpay.db.base import as_utc
from clockpay.db.session import unit_of_work
from clockpay.models.enums import SessionStatus
from clockpay.models.user import User
from clockpay.models.work_session import WorkSession
from clockpay.services import events, session_store
from clockpay.services.policy import require_worker, resolve_effective
from clockpay.utils.decimals import ZERO, dsum, elapsed_hours, q0, q2
from clockpay.utils.periods import normalize_period, period_window

logger = logging.getLogger(__name__)

STATUS_OFF = "OFF"


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def _authorize(actor: Optional[User], username: str) -> None:
    if actor is not None:
        rbac.ensure_can_act_for(actor, username)


def accrue(db: Session, username: str, *, hours: Decimal, rate: Decimal) -> User:
    """Add a closed segment's hours and wage to the worker's running totals.

    Must run inside the same transaction as the segment close.
    """
    user = require_worker(db, username, lock=True)
    hours = q2(hours)
    user.cumulative_hours = q2(Decimal(user.cumulative_hours or 0) + hours)
    user.cumulative_wage = q2(Decimal(user.cumulative_wage or 0) + hours * Decimal(rate))
    db.flush()
    return user


def close_segment(
    db: Session,
    row: WorkSession,
    *,
    ended_at: datetime,
    hours: Decimal,
    status: SessionStatus,
    rate: Optional[Decimal] = None,
) -> WorkSession:
    """Close ``row``; when ``rate`` is given the close also accrues wage."""
    session_store.close(db, row, ended_at=ended_at, accrued_hours=hours, status=status)
    if rate is not None:
        accrue(db, row.username, hours=row.accrued_hours, rate=rate)
    return row


# ============ TRANSITIONS ============


def start_session(
    db: Session,
    username: str,
    *,
    actor: Optional[User] = None,
    now: Optional[datetime] = None,
) -> WorkSession:
    """Open a segment, or return the already-open one unchanged."""
    _authorize(actor, username)
    timestamp = _now(now)
    try:
        with unit_of_work(db):
            require_worker(db, username)
            existing = session_store.find_open(db, username)
            if existing is not None:
                return existing
            row = session_store.create_open(db, username, started_at=timestamp)
    except Conflict:
        # Lost a race with a concurrent start; the winner's segment is the answer.
        existing = session_store.find_open(db, username)
        if existing is None:
            raise
        return existing

    logger.info("session_started", extra={"username": username, "session_id": row.id})
    events.emit_session_event(events.SESSION_STARTED, row)
    return row


def pause_session(
    db: Session,
    session_id: int,
    *,
    actor: Optional[User] = None,
    now: Optional[datetime] = None,
) -> WorkSession:
    timestamp = _now(now)
    with unit_of_work(db):
        row = session_store.get_session(db, session_id, lock=True)
        _authorize(actor, row.username)
        if row.status != SessionStatus.ACTIVE or row.ended_at is not None:
            raise InvalidTransition("Only an active, open session can be paused")
        hours = elapsed_hours(as_utc(row.started_at), timestamp)
        close_segment(db, row, ended_at=timestamp, hours=hours, status=SessionStatus.PAUSED)

    sessions_closed_total.labels(reason="paused").inc()
    logger.info(
        "session_paused",
        extra={"username": row.username, "session_id": row.id, "accrued_hours": row.accrued_hours},
    )
    events.emit_session_event(events.SESSION_PAUSED, row)
    return row


def resume_session(
    db: Session,
    session_id: int,
    *,
    actor: Optional[User] = None,
    now: Optional[datetime] = None,
) -> WorkSession:
    timestamp = _now(now)
    with unit_of_work(db):
        row = session_store.get_session(db, session_id, lock=True)
        _authorize(actor, row.username)
        if row.status != SessionStatus.PAUSED:
            raise InvalidTransition("Only a paused session can be resumed")

        if row.ended_at is None:
            # Rows paused before pause started closing segments.
            resumed = session_store.set_status(db, row, SessionStatus.ACTIVE)
        else:
            if session_store.has_open(db, row.username):
                raise ConflictingSession()
            resumed = session_store.create_open(db, row.username, started_at=timestamp)

    logger.info(
        "session_resumed",
        extra={"username": resumed.username, "session_id": resumed.id},
    )
    events.emit_session_event(events.SESSION_RESUMED, resumed)
    return resumed


def end_session(
    db: Session,
    session_id: int,
    *,
    actor: Optional[User] = None,
    now: Optional[datetime] = None,
) -> WorkSession:
    timestamp = _now(now)
    with unit_of_work(db):
        row = session_store.get_session(db, session_id, lock=True)
        _authorize(actor, row.username)
        if row.status != SessionStatus.ACTIVE or row.ended_at is not None:
            raise InvalidTransition("Only an active, open session can be ended")
        rate = resolve_effective(db, row.username).hourly_rate
        hours = elapsed_hours(as_utc(row.started_at), timestamp)
        close_segment(db, row, ended_at=timestamp, hours=hours, status=SessionStatus.DONE, rate=rate)

    sessions_closed_total.labels(reason="ended").inc()
    logger.info(
        "session_ended",
        extra={"username": row.username, "session_id": row.id, "accrued_hours": row.accrued_hours},
    )
    events.emit_session_event(events.SESSION_ENDED, row)
    return row


# ============ READ SIDE ============


@dataclass
class CurrentStatus:
    username: str
    status: str
    open_segment: Optional[WorkSession]
    last_segment: Optional[WorkSession]
    closed_hours: Decimal
    live_hours: Decimal

    @property
    def elapsed_hours(self) -> Decimal:
        return q2(self.closed_hours + self.live_hours)


def _period_chain(day_segments: List[WorkSession], anchor: WorkSession) -> List[WorkSession]:
    """Closed segments of the same work period that precede ``anchor``.

    Walks back from the anchor through PAUSED segments; a DONE segment ends the
    previous period and stops the walk.
    """
    chain: List[WorkSession] = []
    ordered = [s for s in day_segments if s.id != anchor.id and as_utc(s.started_at) <= as_utc(anchor.started_at)]
    for segment in reversed(ordered):
        if segment.ended_at is None or segment.status != SessionStatus.PAUSED:
            break
        chain.append(segment)
    return chain


def current_status(db: Session, username: str, *, now: Optional[datetime] = None) -> CurrentStatus:
    require_worker(db, username)
    timestamp = _now(now)
    open_row = session_store.find_open(db, username)
    latest = session_store.find_latest(db, username)
    anchor = open_row or latest
    if anchor is None:
        return CurrentStatus(username, STATUS_OFF, None, None, ZERO, ZERO)

    day_segments = session_store.list_for_day(db, username, anchor.calendar_day)
    chain = _period_chain(day_segments, anchor)
    closed_hours = dsum(segment.accrued_hours for segment in chain)
    live_hours = ZERO
    if anchor.ended_at is None:
        if anchor.status == SessionStatus.ACTIVE:
            live_hours = elapsed_hours(as_utc(anchor.started_at), timestamp)
    else:
        closed_hours += Decimal(anchor.accrued_hours or 0)

    return CurrentStatus(
        username=username,
        status=anchor.status.value,
        open_segment=open_row,
        last_segment=latest,
        closed_hours=q2(closed_hours),
        live_hours=live_hours,
    )


def history(db: Session, username: str) -> List[WorkSession]:
    require_worker(db, username)
    return session_store.list_for_worker(db, username)


def _require_period(period: str) -> str:
    normalized = normalize_period(period)
    if normalized is None:
        raise InvalidArgument("period must be 'week' or 'month'")
    return normalized


def recap(db: Session, username: str, period: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Completed hours in the current week or month."""
    normalized = _require_period(period)
    require_worker(db, username)
    start, end = period_window(normalized, _now(now))
    hours = session_store.sum_hours(db, username=username, started_from=start, started_to=end)
    return {"username": username, "total_hours": hours, "period": normalized}


def recap_open(db: Session, username: str, period: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Hours carried by ACTIVE/PAUSED segments in the current week or month."""
    normalized = _require_period(period)
    require_worker(db, username)
    start, end = period_window(normalized, _now(now))
    hours = session_store.sum_hours(
        db,
        username=username,
        statuses=(SessionStatus.ACTIVE, SessionStatus.PAUSED),
        started_from=start,
        started_to=end,
    )
    return {"username": username, "total_hours": hours, "period": normalized}


def _range_totals(hours: Decimal, rate: Decimal) -> Dict[str, Decimal]:
    return {"hours": q2(hours), "wage": q0(hours * rate)}


def worker_summary(db: Session, username: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    timestamp = _now(now)
    with unit_of_work(db):
        rate = resolve_effective(db, username).hourly_rate
    latest = session_store.find_latest(db, username)

    totals = {}
    for key, period in (("today", "day"), ("week", "week"), ("month", "month"), ("all", "all")):
        start, end = period_window(period, timestamp)
        hours = session_store.sum_hours(
            db,
            username=username,
            started_from=start,
            started_to=end if start is not None else None,
        )
        totals[key] = _range_totals(hours, rate)

    return {
        "username": username,
        "status": latest.status.value if latest else STATUS_OFF,
        "hourly_rate": rate,
        "last_segment": latest,
        "totals": totals,
    }


def owner_summary(
    db: Session,
    *,
    username: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    timestamp = _now(now)
    if username:
        usernames = [require_worker(db, username).username]
    else:
        usernames = [row.username for row in db.query(User.username).order_by(User.username.asc()).all()]

    summaries = [worker_summary(db, name, now=timestamp) for name in usernames]
    active = set()
    paused = set()
    for row in session_store.list_all_open(db):
        if row.status == SessionStatus.ACTIVE:
            active.add(row.username)
        elif row.status == SessionStatus.PAUSED:
            paused.add(row.username)

    return {
        "generated_at": timestamp,
        "counts": {"workers": len(summaries), "active": len(active), "paused": len(paused)},
        "workers": summaries,
    }
