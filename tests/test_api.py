from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from clockpay.core.security import get_password_hash
from clockpay.services import sessions as session_service

from conftest import T0, auth_headers


def _num(value) -> Decimal:
    return Decimal(str(value))


def test_login_issues_token(client, db, worker):
    worker.hashed_password = get_password_hash("s3cret")
    db.commit()

    response = client.post("/api/auth/login", data={"username": "alice", "password": "s3cret"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    token = body["data"]["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["username"] == "alice"


def test_login_rejects_bad_password(client, db, worker):
    worker.hashed_password = get_password_hash("s3cret")
    db.commit()

    response = client.post("/api/auth/login", data={"username": "alice", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/sessions/current")

    assert response.status_code == 401
    assert response.json()["status"] == "error"


def test_session_lifecycle_over_http(client, worker):
    headers = auth_headers(worker)

    started = client.post("/api/sessions/start", headers=headers)
    assert started.status_code == 200
    session_id = started.json()["data"]["id"]
    again = client.post("/api/sessions/start", headers=headers)
    assert again.json()["data"]["id"] == session_id

    paused = client.post(f"/api/sessions/{session_id}/pause", headers=headers)
    assert paused.json()["data"]["status"] == "PAUSED"

    resumed = client.post(f"/api/sessions/{session_id}/resume", headers=headers)
    new_id = resumed.json()["data"]["id"]
    assert new_id != session_id

    current = client.get("/api/sessions/current", headers=headers).json()["data"]
    assert current["status"] == "ACTIVE"
    assert current["open_segment"]["id"] == new_id

    ended = client.post(f"/api/sessions/{new_id}/end", headers=headers)
    assert ended.json()["data"]["status"] == "DONE"

    history = client.get("/api/sessions", headers=headers).json()["data"]
    assert [row["id"] for row in history] == [new_id, session_id]


def test_invalid_transition_envelope(client, worker):
    headers = auth_headers(worker)
    session_id = client.post("/api/sessions/start", headers=headers).json()["data"]["id"]

    response = client.post(f"/api/sessions/{session_id}/resume", headers=headers)

    assert response.status_code == 409
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "INVALID_TRANSITION"


def test_unknown_session_is_not_found(client, worker):
    response = client.post("/api/sessions/9999/pause", headers=auth_headers(worker))

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_worker_cannot_read_another_workers_history(client, worker, other_worker):
    response = client.get("/api/sessions", params={"username": "bob"}, headers=auth_headers(worker))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_owner_can_start_for_a_worker(client, owner, worker):
    response = client.post("/api/sessions/start", json={"username": "alice"}, headers=auth_headers(owner))

    assert response.status_code == 200
    assert response.json()["data"]["username"] == "alice"


def test_payment_flow_over_http(client, db, owner, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, row.id, now=T0 + timedelta(hours=3))
    headers = auth_headers(owner)

    created = client.post("/api/payroll/payments", json={"username": "alice", "amount": 15000}, headers=headers)
    assert created.status_code == 200
    payment_id = created.json()["data"]["id"]

    rejected = client.post("/api/payroll/payments", json={"username": "alice", "amount": 16000}, headers=headers)
    assert rejected.status_code == 400
    body = rejected.json()
    assert body["code"] == "EXCEEDS_REMAINING_BALANCE"
    assert _num(body["data"]["remaining"]) == Decimal("15000")

    summary = client.get("/api/payroll/workers/alice/summary", headers=auth_headers(worker)).json()["data"]
    assert _num(summary["amount_outstanding"]) == Decimal("15000")

    patched = client.patch(f"/api/payroll/payments/{payment_id}", json={"amount": 30000}, headers=headers)
    assert patched.status_code == 200
    assert _num(patched.json()["data"]["amount"]) == Decimal("30000")

    listed = client.get("/api/payroll/payments", headers=auth_headers(worker)).json()["data"]
    assert listed["total"] == 1

    deleted = client.delete(f"/api/payroll/payments/{payment_id}", headers=headers)
    assert deleted.status_code == 200

    aggregate = client.get("/api/payroll/summary", params={"period": "all"}, headers=headers).json()["data"]
    assert _num(aggregate["outstanding"]) == Decimal("30000")


def test_workers_cannot_record_payments(client, worker):
    response = client.post(
        "/api/payroll/payments",
        json={"username": "alice", "amount": 100},
        headers=auth_headers(worker),
    )

    assert response.status_code == 403


def test_non_positive_payment_is_invalid_argument(client, owner, worker):
    response = client.post(
        "/api/payroll/payments",
        json={"username": "alice", "amount": 0},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_sub_cent_payment_is_invalid_argument(client, db, owner, worker):
    row = session_service.start_session(db, "alice", now=T0)
    session_service.end_session(db, row.id, now=T0 + timedelta(hours=1))

    response = client.post(
        "/api/payroll/payments",
        json={"username": "alice", "amount": "100.005"},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_policy_endpoints(client, owner, worker):
    headers = auth_headers(owner)

    saved = client.put("/api/policy/overrides/alice", json={"auto_pause_minutes": 10}, headers=headers)
    assert saved.status_code == 200
    data = saved.json()["data"]
    assert data["scope"] == "USER"
    assert data["effective"]["auto_pause_minutes"] == 10
    assert data["provenance"]["auto_pause_minutes"] == "OVERRIDE"

    effective = client.get("/api/policy/effective", headers=auth_headers(worker)).json()["data"]
    assert effective["effective"]["auto_pause_minutes"] == 10

    cleared = client.delete("/api/policy/overrides/alice", headers=headers).json()["data"]
    assert cleared["scope"] == "GLOBAL"
    assert cleared["effective"]["auto_pause_minutes"] == 15


def test_policy_bounds_are_validated(client, owner):
    response = client.patch("/api/policy", json={"hourly_rate": 500}, headers=auth_headers(owner))
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"

    response = client.patch("/api/policy", json={"auto_pause_minutes": 121}, headers=auth_headers(owner))
    assert response.status_code == 400


def test_empty_policy_patch_is_rejected(client, owner):
    response = client.patch("/api/policy", json={}, headers=auth_headers(owner))

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_event_feed_polling(client, owner, worker):
    client.post("/api/sessions/start", headers=auth_headers(worker))

    feed = client.get("/api/events", params={"after": 0}, headers=auth_headers(owner)).json()["data"]

    assert [event["name"] for event in feed["events"]] == ["session.started"]
    later = client.get("/api/events", params={"after": feed["last_seq"]}, headers=auth_headers(owner)).json()["data"]
    assert later["events"] == []


def test_healthz_and_version(client):
    assert client.get("/healthz").json()["status"] == "ok"
    assert client.get("/version").json()["app"] == "clockpay"
