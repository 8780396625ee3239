"""
Pytest configuration and fixtures for backend tests.
"""

import pytest
from sqlalchemy import event
from sqlalchemy.pool import StaticPool

from datastore.context import RequestContext, RequestParams, UserContext
from datastore.models import Base
from shared.infrastructure.db import build_engine, build_session_factory
from tests.fakes import DictCache
from tests.models import Device, Sensor, Site, device_links


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = build_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = build_session_factory(engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    # Create all tables
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache():
    return DictCache()


@pytest.fixture
def statements():
    """SQL statements sent to the database while the test runs."""
    captured = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        captured.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    yield captured
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def make_ctx():
    """Build a request context for the test user with the given raw query."""

    def _make(query=None, user_id="u-1", user_name="tester"):
        return RequestContext(
            user=UserContext(id=user_id, name=user_name),
            params=RequestParams(query=query or {}),
        )

    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def seed_devices(db_session):
    """Ten devices d-01..d-10 named device-01..device-10; even ones are INACTIVE."""
    devices = [
        Device(
            id=f"d-{i:02d}",
            name=f"device-{i:02d}",
            status="INACTIVE" if i % 2 == 0 else "ACTIVE",
        )
        for i in range(1, 11)
    ]
    db_session.add_all(devices)
    db_session.flush()
    return devices


@pytest.fixture
def seed_sensors(db_session, seed_devices):
    """Two sensors on d-01."""
    sensors = [
        Sensor(id="s-1", name="temperature", device_id="d-01"),
        Sensor(id="s-2", name="humidity", device_id="d-01"),
    ]
    db_session.add_all(sensors)
    db_session.flush()
    return sensors


@pytest.fixture
def seed_sites(db_session):
    """
    Two trees and an orphan:

        hq                  warehouse       orphan (parent "gone" missing)
        ├── floor-1
        │   └── room-101
        └── floor-2
    """
    sites = [
        Site(id="s-room-101", name="room-101", parent_id="s-floor-1"),
        Site(id="s-hq", name="hq", parent_id=None),
        Site(id="s-floor-1", name="floor-1", parent_id="s-hq"),
        Site(id="s-floor-2", name="floor-2", parent_id="s-hq"),
        Site(id="s-warehouse", name="warehouse", parent_id=None),
        Site(id="s-orphan", name="orphan", parent_id="s-gone"),
    ]
    db_session.add_all(sites)
    db_session.flush()
    return sites


@pytest.fixture
def seed_links(db_session):
    """Directed cycle a -> b -> c -> a plus a tail c -> d."""
    db_session.execute(
        device_links.insert(),
        [
            {"A": "a", "B": "b"},
            {"A": "b", "B": "c"},
            {"A": "c", "B": "a"},
            {"A": "c", "B": "d"},
        ],
    )
    db_session.flush()
