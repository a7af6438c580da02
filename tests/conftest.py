from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import clockpay.models  # noqa: F401
from clockpay.core.security import create_access_token
from clockpay.db.base import Base
from clockpay.db.session import get_db
from clockpay.main import app
from clockpay.models.enums import Role
from clockpay.models.policy import GLOBAL_POLICY_ID, GlobalPolicy
from clockpay.models.user import User
from clockpay.services.events import event_bus

T0 = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    session.add(
        GlobalPolicy(
            id=GLOBAL_POLICY_ID,
            hourly_rate=Decimal("10000"),
            auto_pause_minutes=15,
            auto_pause_enabled=False,
        )
    )
    session.commit()
    event_bus.clear()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _make_user(db, username: str, role: Role) -> User:
    user = User(
        username=username,
        hashed_password="not-used",
        full_name=username.title(),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def owner(db):
    return _make_user(db, "boss", Role.OWNER)


@pytest.fixture()
def worker(db):
    return _make_user(db, "alice", Role.WORKER)


@pytest.fixture()
def other_worker(db):
    return _make_user(db, "bob", Role.WORKER)


@pytest.fixture()
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.username})
    return {"Authorization": f"Bearer {token}"}
