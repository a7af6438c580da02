from __future__ import annotations

from decimal import Decimal

import pytest

from clockpay.core.errors import InvalidArgument, WorkerNotFound
from clockpay.models.enums import PolicySource
from clockpay.models.policy import GlobalPolicy, WorkerOverride
from clockpay.services import policy as policy_service
from clockpay.services.policy import PolicyValues, merge_policy


def test_merge_policy_prefers_override_fields_and_reports_provenance():
    global_values = PolicyValues(hourly_rate=Decimal("10000"), auto_pause_minutes=15, auto_pause_enabled=False)

    effective = merge_policy("alice", global_values, {"hourly_rate": None, "auto_pause_minutes": 10})

    assert effective.hourly_rate == Decimal("10000")
    assert effective.auto_pause_minutes == 10
    assert effective.auto_pause_enabled is False
    assert effective.provenance["auto_pause_minutes"] == PolicySource.OVERRIDE
    assert effective.provenance["hourly_rate"] == PolicySource.GLOBAL
    assert effective.scope == "USER"


def test_merge_policy_without_override_is_global_scope():
    global_values = PolicyValues(hourly_rate=Decimal("12000"), auto_pause_minutes=20, auto_pause_enabled=True)

    effective = merge_policy("alice", global_values, None)

    assert effective.scope == "GLOBAL"
    assert effective.as_dict()["effective"] == global_values.as_dict()
    assert "override" not in effective.as_dict()["sources"]


def test_set_override_merges_instead_of_replacing(db, worker):
    policy_service.set_override(db, "alice", {"auto_pause_minutes": 10})

    effective = policy_service.get_effective(db, "alice")
    assert effective.auto_pause_minutes == 10
    assert effective.hourly_rate == Decimal("10000")
    assert effective.auto_pause_enabled is False

    policy_service.set_override(db, "alice", {"auto_pause_enabled": False})

    effective = policy_service.get_effective(db, "alice")
    assert effective.auto_pause_minutes == 10
    row = db.query(WorkerOverride).filter(WorkerOverride.username == "alice").one()
    assert row.hourly_rate == Decimal("10000")


def test_clear_override_reverts_to_global(db, worker):
    policy_service.set_override(db, "alice", {"hourly_rate": Decimal("25000"), "auto_pause_minutes": 5})

    effective = policy_service.clear_override(db, "alice")

    global_values = policy_service.get_global(db)
    assert effective.scope == "GLOBAL"
    assert effective.hourly_rate == global_values.hourly_rate
    assert effective.auto_pause_minutes == global_values.auto_pause_minutes
    assert effective.auto_pause_enabled == global_values.auto_pause_enabled


def test_clear_override_is_idempotent(db, worker):
    first = policy_service.clear_override(db, "alice")
    second = policy_service.clear_override(db, "alice")

    assert first.as_dict() == second.as_dict()


def test_set_override_rejects_empty_patch(db, worker):
    with pytest.raises(InvalidArgument):
        policy_service.set_override(db, "alice", {})
    with pytest.raises(InvalidArgument):
        policy_service.set_override(db, "alice", {"hourly_rate": None})


def test_set_override_unknown_worker(db):
    with pytest.raises(WorkerNotFound):
        policy_service.set_override(db, "ghost", {"auto_pause_minutes": 10})


def test_get_effective_unknown_worker(db):
    with pytest.raises(WorkerNotFound):
        policy_service.get_effective(db, "ghost")


def test_update_global_rejects_empty_payload(db):
    with pytest.raises(InvalidArgument):
        policy_service.update_global(db, {})


def test_update_global_creates_singleton_when_missing(db):
    db.query(GlobalPolicy).delete()
    db.commit()

    values = policy_service.update_global(db, {"hourly_rate": Decimal("15000")})

    assert values.hourly_rate == Decimal("15000")
    assert values.auto_pause_minutes == 15
    assert db.query(GlobalPolicy).count() == 1


def test_override_fields_filled_from_global_keep_their_value(db, worker):
    policy_service.set_override(db, "alice", {"auto_pause_minutes": 30})
    # Fields absent from the first override were filled from global at write time.
    policy_service.update_global(db, {"auto_pause_enabled": True})

    effective = policy_service.get_effective(db, "alice")
    assert effective.auto_pause_minutes == 30
    assert effective.auto_pause_enabled is False
