"""
Pytest configuration and shared fixtures.

Fixtures available to all tests:
  • engine / services     — in-memory SQLite wired into a fresh service graph
  • make_owner(...)       — create an owner account, returns OwnerAccount
  • fake_ws()             — AsyncMock websocket that records sent JSON
  • sent(ws)              — decoded list of events a fake websocket received
  • client                — FastAPI TestClient around a fresh app
  • login(client, ...)    — log in and return Authorization headers
"""

from __future__ import annotations

import json
import os
import sys
from typing import Callable, List
from unittest.mock import AsyncMock

import pytest

# Ensure the project root is on the path so all wheelcast imports resolve.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient  # noqa: E402

from wheelcast import owners as owners_module  # noqa: E402
from wheelcast.app import create_app  # noqa: E402
from wheelcast.database import create_engine_for, init_db  # noqa: E402
from wheelcast.domain.models import OwnerAccount  # noqa: E402
from wheelcast.services import Services, build_services  # noqa: E402


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(owners_module, "_PBKDF2_ITERATIONS", 1000)


# ---------------------------------------------------------------------------
# Storage / services
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    eng = create_engine_for("sqlite:///:memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def services(engine) -> Services:
    return build_services(engine)


@pytest.fixture
def make_owner(services) -> Callable[..., OwnerAccount]:
    def _factory(username: str = "streamer", password: str = "hunter2", role: str = "user") -> OwnerAccount:
        return services.owners.create_owner(username, password, role)
    return _factory


# ---------------------------------------------------------------------------
# Fake websockets
# ---------------------------------------------------------------------------

def _fake_ws() -> AsyncMock:
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


def _sent(ws: AsyncMock) -> List[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.call_args_list]


@pytest.fixture
def fake_ws():
    return _fake_ws


@pytest.fixture
def sent():
    return _sent


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
def client(services):
    app = create_app(services)
    # The context manager runs the lifespan: tables + default admin/admin.
    with TestClient(app) as test_client:
        yield test_client


def _login(client: TestClient, username: str = "admin", password: str = "admin") -> dict:
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    # Tests pass the bearer header explicitly; a lingering cookie would
    # authenticate requests that are meant to be anonymous.
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def login():
    return _login
