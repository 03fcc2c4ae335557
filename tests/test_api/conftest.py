"""
API fixtures: the app wired to the per-test store, scheduler off
"""
import pytest
from fastapi.testclient import TestClient

from lecturevault.config import Settings
from lecturevault.main import create_app


@pytest.fixture
def client(store):
    """Test client for the FastAPI app"""
    app = create_app(store=store, settings=Settings(SCHEDULER_ENABLED=False))
    with TestClient(app) as client:
        yield client
