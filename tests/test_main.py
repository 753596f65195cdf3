# FILE: tests/test_main.py
"""
Smoke tests for the assembled application in main.py.
Startup hooks are not run (no `with TestClient(...)`), so no database or
scheduler is touched.
"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


def test_root(client):
    from driftpin import __version__

    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["version"] == __version__


def test_ping(client):
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["backend"] in ("sql", "redis")


def test_sweep_status(client):
    response = client.get("/sweep/status")
    assert response.status_code == 200
    assert "running" in response.json()


def test_messages_router_mounted(client):
    paths = {route.path for route in client.app.routes}
    assert "/messages" in paths
    assert "/messages/{message_id}/replies" in paths
