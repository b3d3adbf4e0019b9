"""Pytest fixtures — SQLite database and a fresh realtime hub per test."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.realtime.hub import RealtimeHub, get_hub  # noqa: E402

# Import all models so they register with Base.metadata
from app.models.event import Event             # noqa: F401,E402
from app.models.attendee import Attendee       # noqa: F401,E402
from app.models.message import ChatMessage     # noqa: F401,E402

SQLITE_URL = "sqlite:///./test.db"

HOST_ID = "u_host"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine (one session per thread)."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def hub():
    return RealtimeHub()


@pytest.fixture(scope="function")
def client(session_factory, hub):
    """FastAPI TestClient (Socket.IO mounted) with the database and hub overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_hub] = lambda: hub
    with TestClient(hub.asgi_app(app)) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: request bodies and API shortcuts
# ---------------------------------------------------------------------------
def make_profile(nickname: str = "阿明", gender: str = "男", age: int = 25) -> dict:
    return {
        "nickname": nickname,
        "gender": gender,
        "age": age,
        "intro": "喜歡唱歌",
        "photoUri": f"https://photos.example/{nickname}.jpg",
    }


def event_body(host_id: str = HOST_ID, **overrides) -> dict:
    """A valid POST /events body; keyword overrides use wire (camelCase) names."""
    start = datetime.now(timezone.utc) + timedelta(hours=3)
    body = {
        "type": "KTV",
        "region": "台北市",
        "place": "錢櫃 林森店",
        "timeRange": "20:00",
        "timeISO": start.isoformat(),
        "builtInPeople": 1,
        "maxPeople": 4,
        "notes": "",
        "createdBy": host_id,
        "createdByProfile": make_profile("主揪"),
    }
    body.update(overrides)
    return body


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def create_test_event(client: TestClient, host_id: str = HOST_ID, **overrides) -> dict:
    """Helper — POST /events and return response JSON."""
    resp = client.post("/events", json=event_body(host_id, **overrides), headers=as_user(host_id))
    assert resp.status_code == 201, resp.text
    return resp.json()


def join(client: TestClient, event_id: str, user_id: str):
    return client.post(f"/events/{event_id}/join", json={
        "userId": user_id,
        "profile": make_profile(user_id[-6:]),
    })


def attendee_of(event_json: dict, user_id: str) -> dict:
    matches = [a for a in event_json["attendees"] if a["userId"] == user_id]
    assert len(matches) == 1, event_json["attendees"]
    return matches[0]


def decide(client: TestClient, event_id: str, attendee_id: str, action: str, host_id: str = HOST_ID):
    return client.post(
        f"/events/{event_id}/attendees/{attendee_id}/confirm",
        json={"action": action},
        headers=as_user(host_id),
    )


def join_and_confirm(client: TestClient, event_id: str, user_id: str, host_id: str = HOST_ID) -> dict:
    """Join as ``user_id`` and have the host confirm; returns the attendee JSON."""
    resp = join(client, event_id, user_id)
    assert resp.status_code == 200, resp.text
    attendee = attendee_of(resp.json(), user_id)
    resp = decide(client, event_id, attendee["id"], "confirm", host_id)
    assert resp.status_code == 200, resp.text
    return attendee_of(resp.json(), user_id)
