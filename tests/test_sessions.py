from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from clockpay.core.errors import (
    Conflict,
    ConflictingSession,
    Forbidden,
    InvalidArgument,
    InvalidTransition,
    WorkerNotFound,
)
from clockpay.db.session import unit_of_work
from clockpay.models.enums import SessionStatus
from clockpay.models.user import User
from clockpay.models.work_session import WorkSession
from clockpay.services import events, session_store
from clockpay.services import policy as policy_service
from clockpay.services import sessions as session_service

from conftest import T0


def _open_segments(db, username):
    return db.query(WorkSession).filter(WorkSession.username == username, WorkSession.ended_at.is_(None)).all()


def test_start_is_idempotent(db, worker):
    first = session_service.start_session(db, "alice", now=T0)
    second = session_service.start_session(db, "alice", now=T0 + timedelta(minutes=5))

    assert first.id == second.id
    assert first.status == SessionStatus.ACTIVE
    assert first.accrued_hours == Decimal("0")
    assert len(_open_segments(db, "alice")) == 1


def test_start_unknown_worker(db):
    with pytest.raises(WorkerNotFound):
        session_service.start_session(db, "ghost", now=T0)


def test_pause_closes_segment_with_elapsed_hours(db, worker):
    row = session_service.start_session(db, "alice", now=T0)

    paused = session_service.pause_session(db, row.id, now=T0 + timedelta(minutes=90))

    assert paused.status == SessionStatus.PAUSED
    assert paused.ended_at is not None
    assert paused.accrued_hours == Decimal("1.50")
    assert _open_segments(db, "alice") == []


def test_pause_then_resume_chains_a_new_segment(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.pause_session(db, row.id, now=T0 + timedelta(hours=1))

    resumed = session_service.resume_session(db, row.id, now=T0 + timedelta(hours=2))

    assert resumed.id != row.id
    assert resumed.status == SessionStatus.ACTIVE
    assert resumed.started_at.replace(tzinfo=None) == (T0 + timedelta(hours=2)).replace(tzinfo=None)
    segments = db.query(WorkSession).filter(WorkSession.username == "alice").all()
    assert sorted(s.status.value for s in segments) == ["ACTIVE", "PAUSED"]
    assert len(_open_segments(db, "alice")) == 1


def test_resume_legacy_open_paused_row_flips_in_place(db, worker):
    row = WorkSession(
        username="alice",
        calendar_day=T0.date(),
        started_at=T0,
        ended_at=None,
        accrued_hours=Decimal("0"),
        status=SessionStatus.PAUSED,
    )
    db.add(row)
    db.commit()

    resumed = session_service.resume_session(db, row.id, now=T0 + timedelta(hours=1))

    assert resumed.id == row.id
    assert resumed.status == SessionStatus.ACTIVE
    assert db.query(WorkSession).count() == 1


def test_resume_rejects_when_another_segment_is_open(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.pause_session(db, row.id, now=T0 + timedelta(hours=1))
    session_service.start_session(db, "alice", now=T0 + timedelta(hours=2))

    with pytest.raises(ConflictingSession):
        session_service.resume_session(db, row.id, now=T0 + timedelta(hours=3))


def test_resume_on_active_session_is_invalid(db, worker):
    row = session_service.start_session(db, "alice", now=T0)

    with pytest.raises(InvalidTransition):
        session_service.resume_session(db, row.id, now=T0 + timedelta(hours=1))


def test_end_on_done_session_is_invalid(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, row.id, now=T0 + timedelta(hours=1))

    with pytest.raises(InvalidTransition):
        session_service.end_session(db, row.id, now=T0 + timedelta(hours=2))


def test_pause_on_paused_session_is_invalid(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.pause_session(db, row.id, now=T0 + timedelta(hours=1))

    with pytest.raises(InvalidTransition):
        session_service.pause_session(db, row.id, now=T0 + timedelta(hours=2))


def test_end_accrues_wage_at_effective_rate(db, worker):
    policy_service.set_override(db, "alice", {"hourly_rate": Decimal("20000")})
    row = session_service.start_session(db, "alice", now=T0)

    ended = session_service.end_session(db, row.id, now=T0 + timedelta(hours=3))

    assert ended.status == SessionStatus.DONE
    assert ended.accrued_hours == Decimal("3.00")
    account = db.query(User).filter(User.username == "alice").one()
    assert account.cumulative_hours == Decimal("3.00")
    assert account.cumulative_wage == Decimal("60000.00")


def test_elapsed_is_floored_at_zero(db, worker):
    row = session_service.start_session(db, "alice", now=T0)

    paused = session_service.pause_session(db, row.id, now=T0 - timedelta(minutes=10))

    assert paused.accrued_hours == Decimal("0")


def test_worker_cannot_act_for_someone_else(db, worker, other_worker, owner):
    row = session_service.start_session(db, "alice", now=T0)

    with pytest.raises(Forbidden):
        session_service.pause_session(db, row.id, actor=other_worker, now=T0 + timedelta(hours=1))
    with pytest.raises(Forbidden):
        session_service.start_session(db, "alice", actor=other_worker, now=T0)

    paused = session_service.pause_session(db, row.id, actor=owner, now=T0 + timedelta(hours=1))
    assert paused.status == SessionStatus.PAUSED


def test_current_status_folds_the_day_chain(db, worker):
    first = session_service.start_session(db, "alice", now=T0)
    session_service.pause_session(db, first.id, now=T0 + timedelta(hours=1))
    session_service.resume_session(db, first.id, now=T0 + timedelta(hours=1, minutes=30))

    state = session_service.current_status(db, "alice", now=T0 + timedelta(hours=2))

    assert state.status == "ACTIVE"
    assert state.closed_hours == Decimal("1.00")
    assert state.live_hours == Decimal("0.50")
    assert state.elapsed_hours == Decimal("1.50")


def test_current_status_never_decreases_across_pause(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    instant = T0 + timedelta(minutes=45)

    before = session_service.current_status(db, "alice", now=instant)
    session_service.pause_session(db, row.id, now=instant)
    after = session_service.current_status(db, "alice", now=instant + timedelta(minutes=20))

    assert after.status == "PAUSED"
    assert after.elapsed_hours >= before.elapsed_hours
    assert after.live_hours == Decimal("0")


def test_current_status_ignores_previous_done_period(db, worker):
    first = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, first.id, now=T0 + timedelta(hours=2))
    session_service.start_session(db, "alice", now=T0 + timedelta(hours=3))

    state = session_service.current_status(db, "alice", now=T0 + timedelta(hours=4))

    assert state.closed_hours == Decimal("0")
    assert state.elapsed_hours == Decimal("1.00")


def test_current_status_off_without_segments(db, worker):
    state = session_service.current_status(db, "alice", now=T0)

    assert state.status == "OFF"
    assert state.elapsed_hours == Decimal("0")


def test_history_is_newest_first(db, worker):
    first = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, first.id, now=T0 + timedelta(hours=1))
    second = session_service.start_session(db, "alice", now=T0 + timedelta(hours=2))

    rows = session_service.history(db, "alice")

    assert [row.id for row in rows] == [second.id, first.id]


def test_recap_counts_only_done_segments(db, worker):
    first = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, first.id, now=T0 + timedelta(hours=2))
    second = session_service.start_session(db, "alice", now=T0 + timedelta(hours=3))
    session_service.pause_session(db, second.id, now=T0 + timedelta(hours=4))

    week = session_service.recap(db, "alice", "minggu", now=T0 + timedelta(hours=5))
    open_week = session_service.recap_open(db, "alice", "w", now=T0 + timedelta(hours=5))

    assert week["period"] == "week"
    assert week["total_hours"] == Decimal("2.00")
    assert open_week["total_hours"] == Decimal("1.00")


def test_recap_rejects_unknown_period(db, worker):
    with pytest.raises(InvalidArgument):
        session_service.recap(db, "alice", "fortnight", now=T0)


def test_worker_and_owner_summaries(db, worker, other_worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, row.id, now=T0 + timedelta(hours=1, minutes=30))
    session_service.start_session(db, "bob", now=T0 + timedelta(hours=1))

    summary = session_service.worker_summary(db, "alice", now=T0 + timedelta(hours=2))
    assert summary["totals"]["today"] == {"hours": Decimal("1.50"), "wage": Decimal("15000")}
    assert summary["totals"]["all"]["hours"] == Decimal("1.50")
    assert summary["status"] == "DONE"

    overview = session_service.owner_summary(db, now=T0 + timedelta(hours=2))
    assert overview["counts"] == {"workers": 2, "active": 1, "paused": 0}
    assert [entry["username"] for entry in overview["workers"]] == ["alice", "bob"]


def test_transitions_publish_events(db, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.pause_session(db, row.id, now=T0 + timedelta(hours=1))

    names = [event.name for event in events.event_bus.since(0)]
    assert names == [events.SESSION_STARTED, events.SESSION_PAUSED]
    assert events.event_bus.since(0)[0].payload["username"] == "alice"


def test_current_status_open_paused_row_adds_no_live_time(db, worker):
    db.add(
        WorkSession(
            username="alice",
            calendar_day=T0.date(),
            started_at=T0,
            ended_at=None,
            accrued_hours=Decimal("0"),
            status=SessionStatus.PAUSED,
        )
    )
    db.commit()

    state = session_service.current_status(db, "alice", now=T0 + timedelta(hours=2))

    assert state.status == "PAUSED"
    assert state.open_segment is not None
    assert state.live_hours == Decimal("0")
    assert state.elapsed_hours == Decimal("0")


def test_second_open_segment_is_a_conflict(db, worker):
    first = session_service.start_session(db, "alice", now=T0)

    with pytest.raises(Conflict):
        with unit_of_work(db):
            session_store.create_open(db, "alice", started_at=T0 + timedelta(minutes=1))

    assert [row.id for row in _open_segments(db, "alice")] == [first.id]


def test_start_that_loses_the_race_returns_the_winner(db, worker, monkeypatch):
    with unit_of_work(db):
        winner = session_store.create_open(db, "alice", started_at=T0)
    real_find_open = session_store.find_open
    calls = []

    def find_open_after_race(db, username):
        calls.append(username)
        if len(calls) == 1:
            return None
        return real_find_open(db, username)

    monkeypatch.setattr(session_store, "find_open", find_open_after_race)

    row = session_service.start_session(db, "alice", now=T0 + timedelta(minutes=1))

    assert row.id == winner.id
    assert len(calls) == 2
    assert len(_open_segments(db, "alice")) == 1
