"""
Pytest configuration and shared fixtures.

Fixtures available to all tests:
  • db_session            — session on a fresh in-memory SQLite database
  • client                — FastAPI TestClient bound to the same database
  • auth_headers(...)     — Authorization header for a signed-in user
  • make_formation(...)   — insert a formation row directly
  • sample_payload        — a valid create/update request body
"""

from __future__ import annotations

import os
import sys
from typing import Dict, Optional

import pytest

# Ensure the project root is on the path so all formation_hub imports resolve.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from formation_hub import cache_backend, config, database  # noqa: E402
from formation_hub.metrics import reset_metrics_for_tests  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    """Fresh in-memory database, memory cache and metrics for every test."""
    monkeypatch.setattr(config, "REDIS_URL", "")
    monkeypatch.setattr(config, "CMS_URL", "")
    monkeypatch.setattr(config, "DISCORD_BOT_TOKEN", "")
    monkeypatch.setattr(config, "AUTH_SECRET", "test-secret")
    cache_backend.reset_cache_backend_for_tests()
    reset_metrics_for_tests()

    database.configure_engine("sqlite://")
    database.init_db()
    yield
    database.Base.metadata.drop_all(bind=database.engine)
    cache_backend.reset_cache_backend_for_tests()


@pytest.fixture
def db_session():
    session = database.get_db()
    yield session
    session.close()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from formation_hub.app import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    from formation_hub.auth import create_token

    def _factory(user_id: str = "1001", username: str = "Odie", avatar: Optional[str] = None) -> Dict[str, str]:
        token = create_token({"id": user_id, "username": username, "avatar": avatar})
        return {"Authorization": f"Bearer {token}"}

    return _factory


@pytest.fixture
def make_formation(db_session):
    def _factory(
        name: str = "Dream realm burst",
        user_id: str = "1001",
        heroes: str = "1,3,5",
        tags: str = "",
        artifact: str = "starter-1",
        layout: int = 0,
    ) -> database.Formation:
        row = database.Formation(
            name=name,
            user_id=user_id,
            formation=heroes,
            tags=tags,
            artifact=artifact,
            layout=layout,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _factory


@pytest.fixture
def sample_payload() -> dict:
    return {
        "formation": ["1", "3", "5", "7", "9"],
        "artifact": "starter-2",
        "layout": "1",
        "name": "Arena wall",
        "tags": ["arena", "tank"],
        "formationShareId": "share-123",
    }
