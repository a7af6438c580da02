"""
Work session endpoints

Start / pause / resume / end a worker's clocked time, plus the read-side
views built from the segment log (history, current status, recaps, summaries).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from clockpay.core import rbac
from clockpay.core.deps import get_current_user, require_owner
from clockpay.core.errors import success_envelope
from clockpay.db.session import get_db
from clockpay.models.user import User
from clockpay.schemas.session import (
    CurrentStatusRead,
    OwnerSummaryRead,
    RecapRead,
    SessionStartRequest,
    WorkerSummaryRead,
    WorkSessionRead,
)
from clockpay.services import sessions as session_service

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _target_username(current_user: User, username: Optional[str]) -> str:
    target = (username or "").strip() or current_user.username
    rbac.ensure_can_act_for(current_user, target)
    return target


def _segment(row) -> Optional[WorkSessionRead]:
    return WorkSessionRead.model_validate(row) if row is not None else None


@router.post("/start")
def start_session(
    payload: Optional[SessionStartRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    username = (payload.username if payload else None) or current_user.username
    row = session_service.start_session(db, username, actor=current_user)
    return success_envelope(_segment(row), message="Session started")


@router.post("/{session_id}/pause")
def pause_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    row = session_service.pause_session(db, session_id, actor=current_user)
    return success_envelope(_segment(row), message="Session paused")


@router.post("/{session_id}/resume")
def resume_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    row = session_service.resume_session(db, session_id, actor=current_user)
    return success_envelope(_segment(row), message="Session resumed")


@router.post("/{session_id}/end")
def end_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    row = session_service.end_session(db, session_id, actor=current_user)
    return success_envelope(_segment(row), message="Session ended")


@router.get("")
def list_sessions(
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = _target_username(current_user, username)
    rows = session_service.history(db, target)
    return success_envelope([_segment(row) for row in rows])


@router.get("/current")
def current_status(
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = _target_username(current_user, username)
    state = session_service.current_status(db, target)
    data = CurrentStatusRead(
        username=state.username,
        status=state.status,
        open_segment=_segment(state.open_segment),
        last_segment=_segment(state.last_segment),
        closed_hours_today=state.closed_hours,
        live_hours=state.live_hours,
        elapsed_hours=state.elapsed_hours,
    )
    return success_envelope(data)


@router.get("/recap")
def recap(
    username: Optional[str] = Query(None),
    period: str = Query("week"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = _target_username(current_user, username)
    return success_envelope(RecapRead(**session_service.recap(db, target, period)))


@router.get("/open-recap")
def open_recap(
    username: Optional[str] = Query(None),
    period: str = Query("week"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = _target_username(current_user, username)
    return success_envelope(RecapRead(**session_service.recap_open(db, target, period)))


@router.get("/summary")
def owner_summary(
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_owner),
) -> dict:
    summary = session_service.owner_summary(db, username=username)
    return success_envelope(OwnerSummaryRead.model_validate(summary))


@router.get("/worker-summary")
def worker_summary(
    username: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    target = _target_username(current_user, username)
    summary = session_service.worker_summary(db, target)
    return success_envelope(WorkerSummaryRead.model_validate(summary))
