"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Tests share one database for the session; each test gets its own owner id
so rows from other tests never show up in listings.
"""
import os
import uuid
from datetime import datetime, timezone

SQLITE_URL = "sqlite:///./test_memoir.db"
os.environ.setdefault("DATABASE_URL", SQLITE_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.db.base import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.schemas.memory import MediaAttachment, MemoryCreateRequest  # noqa: E402
from app.services.memory import MemoryStore  # noqa: E402
from app.services.sharing import SharingService  # noqa: E402

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime.now(tz=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def owner_id() -> str:
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def owner_headers(owner_id) -> dict:
    return {"X-User-Id": owner_id}


@pytest.fixture()
def memory(db, owner_id):
    payload = MemoryCreateRequest(
        question="What was your first job?",
        response="Delivering newspapers before school, rain or shine.",
        emotional_context="nostalgic",
        media_attachments=[
            MediaAttachment(type="image", url="/media/bike.jpg", filename="bike.jpg", size=2048),
        ],
    )
    mem = MemoryStore(db).create(owner_id=owner_id, payload=payload)
    mem.share_passcode = "LegacyCode99"
    db.commit()
    return mem


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def service(db, clock) -> SharingService:
    return SharingService(db, clock=clock)


@pytest.fixture()
def session_factory():
    """Opens extra sessions, e.g. to play a concurrent request."""
    return TestingSessionLocal
