import os

# Keep the application engine off the working directory while tests import it.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from event_registry.core import redis_config
from event_registry.database.db import Base, get_db
from event_registry.main import app
from event_registry.models.materials import Material
from event_registry.services import registry

ORGANIZER = "organizer-1"

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    server = fakeredis.FakeServer()
    return fakeredis.FakeStrictRedis(server=server, decode_responses=True)


@pytest.fixture(autouse=True)
def redis_client(fake_redis, monkeypatch: pytest.MonkeyPatch):
    """Route the claim locks to fakeredis."""
    monkeypatch.setattr(redis_config, "get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def organizer_id() -> str:
    return ORGANIZER


@pytest.fixture
def organizer_headers() -> dict[str, str]:
    return {"X-User-Id": ORGANIZER}


@pytest.fixture
def event(db_session: Session):
    return registry.create_event(db_session, title="Sunday Flow", category="yoga", organizer_id=ORGANIZER)


@pytest.fixture
def make_material(db_session: Session, event):
    """Factory adding a material to the ``event`` fixture."""

    def _make(item: str = "Yoga Mat", max_quantity: int | None = 2, **fields) -> Material:
        return registry.add_material(
            db_session,
            event.id,
            {"item": item, "max_quantity": max_quantity, **fields},
            ORGANIZER,
        )

    return _make
