"""Pay-rate and auto-pause policy: one global row plus optional per-worker overrides.

The effective policy for a worker is computed by ``merge_policy``, a pure function
over two flat records. Callers that already hold a transaction use
``resolve_effective`` (flush only); the public operations commit their own unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from clockpay.core.errors import InvalidArgument, WorkerNotFound
from clockpay.core.settings import settings
from clockpay.db.session import unit_of_work
from clockpay.models.enums import PolicySource
from clockpay.models.policy import GLOBAL_POLICY_ID, GlobalPolicy, WorkerOverride
from clockpay.models.user import User

logger = logging.getLogger(__name__)

POLICY_FIELDS = ("hourly_rate", "auto_pause_minutes", "auto_pause_enabled")


@dataclass(frozen=True)
class PolicyValues:
    hourly_rate: Decimal
    auto_pause_minutes: int
    auto_pause_enabled: bool

    @classmethod
    def from_row(cls, row: GlobalPolicy) -> "PolicyValues":
        return cls(
            hourly_rate=Decimal(row.hourly_rate),
            auto_pause_minutes=int(row.auto_pause_minutes),
            auto_pause_enabled=bool(row.auto_pause_enabled),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in POLICY_FIELDS}


@dataclass(frozen=True)
class EffectivePolicy:
    username: str
    hourly_rate: Decimal
    auto_pause_minutes: int
    auto_pause_enabled: bool
    provenance: Dict[str, PolicySource]
    global_values: PolicyValues
    override_values: Dict[str, Any] = field(default_factory=dict)
    has_override: bool = False

    @property
    def scope(self) -> str:
        return "USER" if self.has_override else "GLOBAL"

    def as_dict(self) -> Dict[str, Any]:
        sources: Dict[str, Any] = {"global": self.global_values.as_dict()}
        if self.override_values:
            sources["override"] = dict(self.override_values)
        return {
            "scope": self.scope,
            "username": self.username,
            "effective": {name: getattr(self, name) for name in POLICY_FIELDS},
            "sources": sources,
            "provenance": {name: source.value for name, source in self.provenance.items()},
        }


def default_policy_values() -> PolicyValues:
    return PolicyValues(
        hourly_rate=Decimal(settings.default_hourly_rate),
        auto_pause_minutes=settings.default_auto_pause_minutes,
        auto_pause_enabled=settings.default_auto_pause_enabled,
    )


def merge_policy(
    username: str,
    global_values: PolicyValues,
    override: Optional[Mapping[str, Any]],
) -> EffectivePolicy:
    """Resolve each field as ``override.field ?? global.field`` with provenance."""
    override = override or {}
    resolved: Dict[str, Any] = {}
    provenance: Dict[str, PolicySource] = {}
    present: Dict[str, Any] = {}
    for name in POLICY_FIELDS:
        value = override.get(name)
        if value is None:
            resolved[name] = getattr(global_values, name)
            provenance[name] = PolicySource.GLOBAL
        else:
            resolved[name] = value
            provenance[name] = PolicySource.OVERRIDE
            present[name] = value
    return EffectivePolicy(
        username=username,
        hourly_rate=Decimal(resolved["hourly_rate"]),
        auto_pause_minutes=int(resolved["auto_pause_minutes"]),
        auto_pause_enabled=bool(resolved["auto_pause_enabled"]),
        provenance=provenance,
        global_values=global_values,
        override_values=present,
        has_override=bool(override),
    )


def _override_as_mapping(row: Optional[WorkerOverride]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {name: getattr(row, name) for name in POLICY_FIELDS}


def _clean_changes(changes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not changes:
        raise InvalidArgument("At least one policy field must be provided")
    unknown = set(changes) - set(POLICY_FIELDS)
    if unknown:
        raise InvalidArgument(f"Unknown policy fields: {', '.join(sorted(unknown))}")
    cleaned = {key: value for key, value in changes.items() if value is not None}
    if not cleaned:
        raise InvalidArgument("At least one policy field must be provided")
    if "hourly_rate" in cleaned and Decimal(cleaned["hourly_rate"]) <= 0:
        raise InvalidArgument("hourly_rate must be positive")
    if "auto_pause_minutes" in cleaned and int(cleaned["auto_pause_minutes"]) <= 0:
        raise InvalidArgument("auto_pause_minutes must be positive")
    return cleaned


def require_worker(db: Session, username: str, *, lock: bool = False) -> User:
    query = db.query(User).filter(User.username == username)
    if lock:
        # Reload over the identity map; totals read before the lock may be stale.
        query = query.with_for_update().populate_existing()
    user = query.first()
    if not user:
        raise WorkerNotFound(f"Worker '{username}' not found")
    return user


def ensure_global_policy(db: Session, *, defaults: Optional[PolicyValues] = None) -> GlobalPolicy:
    row = db.get(GlobalPolicy, GLOBAL_POLICY_ID)
    if row is None:
        values = defaults or default_policy_values()
        row = GlobalPolicy(id=GLOBAL_POLICY_ID, **values.as_dict())
        db.add(row)
        db.flush()
        logger.info("global_policy_initialised", extra={"amount": values.hourly_rate})
    return row


def global_rate(db: Session) -> Decimal:
    return Decimal(ensure_global_policy(db).hourly_rate)


def resolve_effective(db: Session, username: str) -> EffectivePolicy:
    require_worker(db, username)
    global_values = PolicyValues.from_row(ensure_global_policy(db))
    override = db.query(WorkerOverride).filter(WorkerOverride.username == username).first()
    return merge_policy(username, global_values, _override_as_mapping(override))


def get_global(db: Session) -> PolicyValues:
    with unit_of_work(db):
        return PolicyValues.from_row(ensure_global_policy(db))


def update_global(db: Session, changes: Mapping[str, Any]) -> PolicyValues:
    cleaned = _clean_changes(changes)
    with unit_of_work(db):
        row = ensure_global_policy(db)
        for name, value in cleaned.items():
            setattr(row, name, value)
        db.flush()
        values = PolicyValues.from_row(row)
    logger.info("global_policy_updated", extra={"status": ",".join(sorted(cleaned))})
    return values


def get_effective(db: Session, username: str) -> EffectivePolicy:
    with unit_of_work(db):
        return resolve_effective(db, username)


def set_override(db: Session, username: str, changes: Mapping[str, Any]) -> EffectivePolicy:
    """Upsert a worker override, merging field by field.

    Each stored field is the incoming value if given, else the existing override
    value, else the current global value, so the stored row never holds nulls.
    """
    cleaned = _clean_changes(changes)
    with unit_of_work(db):
        require_worker(db, username)
        global_values = PolicyValues.from_row(ensure_global_policy(db))
        row = db.query(WorkerOverride).filter(WorkerOverride.username == username).first()
        if row is None:
            row = WorkerOverride(username=username)
            db.add(row)
        for name in POLICY_FIELDS:
            if name in cleaned:
                value = cleaned[name]
            elif getattr(row, name) is not None:
                value = getattr(row, name)
            else:
                value = getattr(global_values, name)
            setattr(row, name, value)
        db.flush()
        effective = merge_policy(username, global_values, _override_as_mapping(row))
    logger.info("override_saved", extra={"username": username, "status": ",".join(sorted(cleaned))})
    return effective


def clear_override(db: Session, username: str) -> EffectivePolicy:
    with unit_of_work(db):
        require_worker(db, username)
        removed = db.query(WorkerOverride).filter(WorkerOverride.username == username).delete()
        db.flush()
        effective = resolve_effective(db, username)
    logger.info("override_cleared", extra={"username": username, "closed": removed})
    return effective
