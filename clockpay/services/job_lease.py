from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from clockpay.core.errors import Conflict
from clockpay.db.base import as_utc
from clockpay.db.session import unit_of_work
from clockpay.models.job_lease import JobLease

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def claim_lease(
    db: Session,
    name: str,
    *,
    holder: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> bool:
    """Take the named lease unless another holder owns an unexpired one."""
    timestamp = as_utc(now) if now else _now()
    try:
        with unit_of_work(db):
            lease = db.query(JobLease).filter(JobLease.name == name).with_for_update().first()
            if lease is None:
                lease = JobLease(name=name)
                db.add(lease)
            elif lease.holder != holder and lease.expires_at and as_utc(lease.expires_at) > timestamp:
                logger.info("lease_held", extra={"actor": lease.holder, "status": name})
                return False
            lease.holder = holder
            lease.expires_at = timestamp + timedelta(seconds=ttl_seconds)
            db.flush()
    except Conflict:
        # Another instance inserted the lease row first.
        return False
    return True


def release_lease(db: Session, name: str, *, holder: str) -> None:
    with unit_of_work(db):
        lease = db.query(JobLease).filter(JobLease.name == name).with_for_update().first()
        if lease is not None and lease.holder == holder:
            lease.holder = None
            lease.expires_at = None
            db.flush()
