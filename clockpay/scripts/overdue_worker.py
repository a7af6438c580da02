from __future__ import annotations

import argparse
import logging
import os
import socket
import sys
import time
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from clockpay.core.logging import configure_logging
from clockpay.core.observability import sweeper_runs_total
from clockpay.core.settings import settings
from clockpay.db.session import SessionLocal
from clockpay.services.job_lease import claim_lease, release_lease
from clockpay.services.sweeper import sweep_overdue_sessions

logger = logging.getLogger("overdue_worker")

LEASE_NAME = "overdue_sweeper"


def _holder_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


def run_once(db: Session, *, holder: str) -> int:
    now = datetime.now(timezone.utc)
    if not claim_lease(db, LEASE_NAME, holder=holder, ttl_seconds=settings.sweeper_lease_seconds, now=now):
        sweeper_runs_total.labels(outcome="skipped").inc()
        logger.info("Sweeper lease held elsewhere; skipping run.")
        return 0
    try:
        closed = sweep_overdue_sessions(db, now=now)
    except Exception:
        sweeper_runs_total.labels(outcome="failed").inc()
        raise
    finally:
        release_lease(db, LEASE_NAME, holder=holder)
    sweeper_runs_total.labels(outcome="ok").inc()
    logger.info("Overdue sweep closed %s session(s).", len(closed), extra={"closed": len(closed)})
    return len(closed)


def main() -> None:
    parser = argparse.ArgumentParser(description="Auto-end work sessions left open past the overdue threshold.")
    parser.add_argument("--once", action="store_true", help="Run once and exit.")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.sweeper_interval_seconds,
        help="Seconds between sweeps.",
    )
    parser.add_argument("--force", action="store_true", help="Run even when the scheduler is disabled.")
    args = parser.parse_args()

    configure_logging(level=settings.log_level, fmt=settings.log_format)

    if not args.force and not settings.scheduler_allowed:
        logger.info("Sweeper disabled for environment %s; exiting.", settings.environment)
        sys.exit(0)

    holder = _holder_id()
    while True:
        with SessionLocal() as db:
            run_once(db, holder=holder)
        if args.once:
            break
        time.sleep(args.interval)


if __name__ == "__main__":
    main()
