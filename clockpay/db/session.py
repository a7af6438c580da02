from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from clockpay.core.errors import Conflict
from clockpay.core.settings import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.database_url.startswith("sqlite")

engine_kwargs: dict = {
    "pool_pre_ping": True,
    "future": True,
}

if _is_sqlite:
    engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": settings.db_pool_timeout}
else:
    engine_kwargs.update(
        {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_recycle": settings.db_pool_recycle,
            "connect_args": {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"},
        }
    )

engine = create_engine(settings.database_url, **engine_kwargs)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    class_=Session,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any error.

    Store-level conflicts (unique violations, serialization failures, lock
    timeouts) surface as ``Conflict`` so callers know the request is safe to retry.
    """
    try:
        yield db
        db.commit()
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        logger.warning("transaction_conflict", extra={"status": type(exc.orig).__name__ if exc.orig else None})
        raise Conflict() from exc
    except Exception:
        db.rollback()
        raise
