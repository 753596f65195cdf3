# FILE: tests/test_messages_router.py
"""
Tests for driftpin/messages/router.py
HTTP API over an in-memory SQL store.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from driftpin.errors import StoreUnavailableError
from driftpin.messages.backend import get_store
from driftpin.messages.redis_store import RedisMessageStore
from driftpin.messages.router import router

SF_LAT, SF_LNG = 37.7749, -122.4194


@pytest.fixture
def app(sql_store):
    """Create a test FastAPI application bound to the in-memory store."""
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_store] = lambda: sql_store
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    return TestClient(app)


def _post(client, **overrides):
    body = {"header": "Yard sale", "message": "Saturday 9am", "lat": SF_LAT, "lng": SF_LNG}
    body.update(overrides)
    return client.post("/messages", json=body)


class TestCreate:
    """Test cases for POST /messages."""

    def test_create(self, client):
        response = _post(client)
        assert response.status_code == 201
        data = response.json()
        assert data["header"] == "Yard sale"
        assert data["content"] == "Saturday 9am"
        assert data["location"] == {"lat": SF_LAT, "lng": SF_LNG}
        assert data["reply_count"] == 0
        assert data["opacity"] == 1.0
        assert data["color"] == "#ff6347"
        assert data["age"] == "0m"
        assert data["hours_remaining"] == pytest.approx(24.0, abs=0.01)

    def test_create_with_location_object(self, client):
        response = client.post("/messages", json={
            "header": "h", "content": "c", "location": {"lat": 1.5, "lng": 2.5},
        })
        assert response.status_code == 201
        assert response.json()["location"] == {"lat": 1.5, "lng": 2.5}

    def test_create_with_location_pair(self, client):
        response = client.post("/messages", json={
            "header": "h", "content": "c", "location": [1.5, 2.5],
        })
        assert response.status_code == 201
        assert response.json()["location"] == {"lat": 1.5, "lng": 2.5}

    def test_create_lifetime(self, client):
        response = _post(client, lifetime_hours=2)
        assert response.json()["hours_remaining"] == pytest.approx(2.0, abs=0.01)

    def test_missing_fields(self, client):
        response = client.post("/messages", json={"header": "h"})
        assert response.status_code == 422

    def test_blank_header(self, client):
        assert _post(client, header="   ").status_code == 422

    def test_content_too_long(self, client):
        assert _post(client, message="x" * 501).status_code == 422

    def test_out_of_range_location(self, client):
        response = _post(client, lat=123.0)
        assert response.status_code == 400

    def test_polar_location_on_redis_store(self, app, client):
        redis_client = MagicMock()
        app.dependency_overrides[get_store] = lambda: RedisMessageStore(redis_client)
        response = _post(client, lat=87.0, lng=10.0)
        assert response.status_code == 400
        redis_client.pipeline.assert_not_called()


class TestList:
    """Test cases for GET /messages."""

    def test_radius_query(self, client):
        near = _post(client).json()
        _post(client, lat=SF_LAT + 0.1)  # ~11 km away

        response = client.get("/messages", params={"lat": SF_LAT, "lng": SF_LNG, "radius": 3})
        assert response.status_code == 200
        data = response.json()
        assert [m["id"] for m in data] == [near["id"]]
        assert data[0]["distance_km"] == pytest.approx(0.0, abs=1e-6)

    def test_default_radius(self, client):
        _post(client, lat=SF_LAT + 0.02)  # ~2.2 km
        _post(client, lat=SF_LAT + 0.04)  # ~4.4 km
        response = client.get("/messages", params={"lat": SF_LAT, "lng": SF_LNG})
        assert len(response.json()) == 1

    def test_nearest_first(self, client):
        far = _post(client, lat=SF_LAT + 0.02).json()
        near = _post(client, lat=SF_LAT + 0.005).json()
        data = client.get("/messages", params={"lat": SF_LAT, "lng": SF_LNG}).json()
        assert [m["id"] for m in data] == [near["id"], far["id"]]

    def test_missing_params(self, client):
        assert client.get("/messages").status_code == 422

    @pytest.mark.parametrize("params", [
        {"lat": 91, "lng": 0},
        {"lat": 0, "lng": -181},
        {"lat": 0, "lng": 0, "radius": 0},
        {"lat": 0, "lng": 0, "radius": 20001},
        {"lat": "abc", "lng": 0},
    ])
    def test_invalid_params(self, client, params):
        assert client.get("/messages", params=params).status_code == 422

    def test_store_unavailable(self, app):
        broken = MagicMock()
        broken.find_candidates.side_effect = StoreUnavailableError("down")
        app.dependency_overrides[get_store] = lambda: broken
        response = TestClient(app).get("/messages", params={"lat": 0, "lng": 0})
        assert response.status_code == 503

    def test_list_schedules_purge(self, client, sql_store):
        with patch("driftpin.messages.router.service.purge_expired") as purge:
            client.get("/messages", params={"lat": 0, "lng": 0})
        purge.assert_called_once_with(sql_store)

    def test_failed_purge_does_not_fail_request(self, client):
        with patch("driftpin.messages.router.service.purge_expired", side_effect=RuntimeError("boom")):
            response = client.get("/messages", params={"lat": 0, "lng": 0})
        assert response.status_code == 200


class TestBoundsAndHeatmap:
    """Test cases for GET /messages/in-bounds and GET /messages/heatmap."""

    def test_in_bounds(self, client):
        inside = _post(client, lat=10.5, lng=20.5).json()
        _post(client, lat=12.0, lng=20.5)
        response = client.get("/messages/in-bounds", params={"south": 10, "west": 20, "north": 11, "east": 21})
        assert response.status_code == 200
        assert [m["id"] for m in response.json()] == [inside["id"]]

    def test_in_bounds_inverted(self, client):
        response = client.get("/messages/in-bounds", params={"south": 11, "west": 20, "north": 10, "east": 21})
        assert response.status_code == 400

    def test_heatmap(self, client):
        message = _post(client).json()
        client.post(f"/messages/{message['id']}/replies", json={"text": "a"})
        client.post(f"/messages/{message['id']}/replies", json={"text": "b"})
        response = client.get("/messages/heatmap", params={"lat": SF_LAT, "lng": SF_LNG})
        assert response.status_code == 200
        [point] = response.json()
        assert point["intensity"] == pytest.approx(0.7)

    def test_heatmap_limit(self, client):
        for offset in (0.0, 0.001, 0.002):
            _post(client, lat=SF_LAT + offset)
        response = client.get("/messages/heatmap", params={"lat": SF_LAT, "lng": SF_LNG, "limit": 2})
        assert response.status_code == 200
        assert [p["lat"] for p in response.json()] == [SF_LAT, SF_LAT + 0.001]

    def test_heatmap_invalid_limit(self, client):
        response = client.get("/messages/heatmap", params={"lat": SF_LAT, "lng": SF_LNG, "limit": 0})
        assert response.status_code == 422


class TestSingleMessage:
    """Test cases for GET/DELETE /messages/{id}."""

    def test_get(self, client):
        created = _post(client).json()
        response = client.get(f"/messages/{created['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_get_missing(self, client):
        response = client.get("/messages/doesnotexist")
        assert response.status_code == 404
        assert response.json()["detail"] == "Message not found"

    def test_get_expired(self, client, sql_store):
        created = _post(client, lifetime_hours=1).json()
        stored = sql_store.get_message(created["id"])
        with patch("driftpin.messages.router.lifetime.utcnow", return_value=stored.expires_at + timedelta(seconds=1)):
            response = client.get(f"/messages/{created['id']}")
        assert response.status_code == 404

    def test_delete(self, client):
        created = _post(client).json()
        response = client.delete(f"/messages/{created['id']}")
        assert response.status_code == 204
        assert client.get(f"/messages/{created['id']}").status_code == 404

    def test_delete_missing(self, client):
        assert client.delete("/messages/doesnotexist").status_code == 404


class TestReplies:
    """Test cases for POST /messages/{id}/replies."""

    def test_reply(self, client):
        created = _post(client).json()
        response = client.post(f"/messages/{created['id']}/replies", json={"text": "On my way"})
        assert response.status_code == 201
        data = response.json()
        assert data["reply"]["content"] == "On my way"
        assert data["message"]["reply_count"] == 1
        assert data["message"]["replies"][0]["id"] == data["reply"]["id"]
        assert data["message"]["hours_remaining"] == pytest.approx(26.0, abs=0.01)

    def test_reply_content_alias_and_avatar(self, client):
        created = _post(client).json()
        response = client.post(f"/messages/{created['id']}/replies", json={
            "content": "hey",
            "avatar": {"color": "#00ff00", "shape": "circle", "initials": "Q"},
        })
        assert response.status_code == 201
        assert response.json()["reply"]["avatar"] == {"color": "#00ff00", "shape": "circle", "initials": "Q"}

    def test_reply_missing_text(self, client):
        created = _post(client).json()
        response = client.post(f"/messages/{created['id']}/replies", json={})
        assert response.status_code == 422

    def test_reply_to_missing(self, client):
        response = client.post("/messages/doesnotexist/replies", json={"text": "x"})
        assert response.status_code == 404

    def test_reply_to_expired(self, client, sql_store):
        created = _post(client, lifetime_hours=1).json()
        stored = sql_store.get_message(created["id"])
        with patch("driftpin.messages.router.lifetime.utcnow", return_value=stored.expires_at):
            response = client.post(f"/messages/{created['id']}/replies", json={"text": "late"})
        assert response.status_code == 404
        assert "expired" in response.json()["detail"]
