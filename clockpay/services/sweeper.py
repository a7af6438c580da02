"""Force-close ACTIVE segments that have been open past the overdue threshold.

Overdue segments are closed at ``started_at + threshold`` with exactly
``threshold`` hours accrued at the global rate, not at the real elapsed time
or the worker's override rate.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clockpay.core.errors import ClockpayError
from clockpay.core.observability import sessions_closed_total
from clockpay.core.settings import settings
from clockpay.db.base import as_utc
from clockpay.db.session import unit_of_work
from clockpay.models.enums import SessionStatus
from clockpay.models.work_session import WorkSession
from clockpay.services import events, session_store
from clockpay.services.policy import global_rate
from clockpay.services.sessions import close_segment

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _close_overdue(db: Session, session_id: int, *, threshold: timedelta, cutoff: datetime) -> Optional[WorkSession]:
    with unit_of_work(db):
        row = session_store.get_session(db, session_id, lock=True)
        started = as_utc(row.started_at)
        # Re-check under the lock; the worker may have closed it meanwhile.
        if row.status != SessionStatus.ACTIVE or row.ended_at is not None or started > cutoff:
            return None
        hours = Decimal(threshold.total_seconds()) / Decimal(3600)
        close_segment(
            db,
            row,
            ended_at=started + threshold,
            hours=hours,
            status=SessionStatus.DONE,
            rate=global_rate(db),
        )
    return row


def sweep_overdue_sessions(
    db: Session,
    *,
    now: Optional[datetime] = None,
    threshold_hours: Optional[int] = None,
) -> List[WorkSession]:
    timestamp = as_utc(now) if now else _now()
    threshold = timedelta(hours=threshold_hours or settings.overdue_threshold_hours)
    cutoff = timestamp - threshold

    candidates = [row.id for row in session_store.list_overdue_active(db, started_before=cutoff)]
    closed: List[WorkSession] = []
    for session_id in candidates:
        try:
            row = _close_overdue(db, session_id, threshold=threshold, cutoff=cutoff)
        except (ClockpayError, SQLAlchemyError):
            logger.exception("session_auto_end_failed", extra={"session_id": session_id})
            continue
        if row is None:
            continue
        closed.append(row)
        sessions_closed_total.labels(reason="auto_ended").inc()
        logger.info(
            "session_auto_ended",
            extra={"username": row.username, "session_id": row.id, "accrued_hours": row.accrued_hours},
        )
        events.emit_session_event(events.SESSION_AUTO_ENDED, row, auto=True)
    return closed
