"""
Pytest fixtures for testing
"""
from datetime import datetime

import pytest
from sqlalchemy.orm import Session

from lecturevault.application.gateway import MutationGateway
from lecturevault.application.settings import SettingsService
from lecturevault.application.store import LocalStore
from lecturevault.infrastructure.changelog.bus import ChangeBus
from lecturevault.infrastructure.db.session import Base, build_engine, build_session_factory


@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine (one connection per session) with foreign keys on."""
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Create database session for tests"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def bus():
    return ChangeBus()


@pytest.fixture
def gateway(session_factory, bus):
    """Gateway over an empty store (no settings rows)"""
    return MutationGateway(session_factory, bus)


@pytest.fixture
def store(session_factory):
    """Store after first run: both settings singletons exist"""
    store = LocalStore(session_factory)
    SettingsService(store).ensure_first_run()
    yield store
    store.close()


@pytest.fixture
def event_fields():
    """Minimal standalone event, 2024-01-01 09:00-10:00 UTC"""
    return {
        "title": "Physics lecture",
        "start_time": datetime(2024, 1, 1, 9, 0),
        "end_time": datetime(2024, 1, 1, 10, 0),
        "is_lecture": True,
    }
