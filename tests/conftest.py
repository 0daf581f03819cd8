"""Fixtures compartilhadas: banco SQLite em memória, relógio controlável e
um dispatcher que registra as chamadas em vez de enviar push."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trackstar import crud, models
from trackstar.database import Base, get_db
from trackstar.main import app, get_dispatcher, get_now
from trackstar.security import create_access_token

PUSH_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class RecordingDispatcher:
    def __init__(self, result=True, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, push_token, device_id):
        self.calls.append((push_token, device_id))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(session_factory, clock, dispatcher):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_now] = clock
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_owner(db):
    """Cria um usuário e devolve (user, headers com bearer token)."""
    def _make(email="owner@example.com", push_token=PUSH_TOKEN):
        user = models.User(email=email, push_token=push_token)
        db.add(user)
        db.commit()
        db.refresh(user)
        headers = {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
        return user, headers
    return _make


@pytest.fixture
def owner(make_owner):
    return make_owner()


@pytest.fixture
def paired_device(db, owner):
    """Dispositivo D1/s1 pareado com ``owner``, em IDLE."""
    user, _ = owner
    return crud.claim_device(db, user.id, "D1", "s1")


def device_headers(device_id="D1", secret="s1"):
    return {"x-device-id": device_id, "x-device-secret": secret}
