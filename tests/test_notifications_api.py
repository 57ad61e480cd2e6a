"""Tests for notification feed API routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from query_console.config import reset_settings
from query_console.main import app
from query_console.notifications.feed import NotificationKind
from query_console.observability import reset_observability
from query_console.query.engine import reset_engine


@pytest.fixture(autouse=True)
def clean_state():
    """Reset global state before and after each test."""
    reset_settings()
    reset_engine()
    reset_observability()
    yield
    reset_settings()
    reset_engine()
    reset_observability()


@pytest.fixture
def client():
    """Create a test client with the application lifespan running."""
    with TestClient(app) as client:
        yield client


def _add(kind: NotificationKind, title: str = "select 1") -> int:
    feed = app.state.session.feed
    notification = feed.create(kind, title=title)
    feed.add(notification)
    return notification.id


class TestListNotifications:
    """Tests for GET /api/v1/notifications."""

    def test_empty_feed(self, client: TestClient):
        """Test a new session has no notifications."""
        response = client.get("/api/v1/notifications")
        assert response.status_code == 200
        assert response.json() == {"notifications": [], "max_height": 500, "total_height": 0}

    def test_run_adds_success_notification(self, client: TestClient):
        """Test a successful run shows up in the feed."""
        client.put("/api/v1/session/document", json={"text": "select 1;"})
        client.post("/api/v1/session/toggle-run", params={"wait": "true"})

        data = client.get("/api/v1/notifications").json()

        (notification,) = data["notifications"]
        assert notification["kind"] == "success"
        assert notification["estimated_height"] == 145
        assert notification["title"] == "select 1"
        assert notification["summary"].startswith("1 row in ")
        assert data["total_height"] == 145

    def test_newest_first(self, client: TestClient):
        """Test notifications are ordered newest first."""
        first = _add(NotificationKind.INFO, "first")
        second = _add(NotificationKind.ERROR, "second")

        data = client.get("/api/v1/notifications").json()

        assert [n["id"] for n in data["notifications"]] == [second, first]


class TestMaxHeight:
    """Tests for PUT /api/v1/notifications/max-height."""

    def test_shrinking_evicts_oldest(self, client: TestClient):
        """Test the oldest notifications are dropped to fit the new budget."""
        _add(NotificationKind.SUCCESS)
        _add(NotificationKind.SUCCESS)
        newest = _add(NotificationKind.INFO)

        response = client.put("/api/v1/notifications/max-height", json={"max_height": 100})
        assert response.status_code == 200

        data = response.json()
        assert data["max_height"] == 100
        assert [n["id"] for n in data["notifications"]] == [newest]
        assert data["total_height"] == 70

    def test_negative_rejected(self, client: TestClient):
        """Test negative budgets fail validation."""
        response = client.put("/api/v1/notifications/max-height", json={"max_height": -1})
        assert response.status_code == 422


class TestRemoveNotifications:
    """Tests for DELETE endpoints."""

    def test_remove_one(self, client: TestClient):
        """Test removing a notification by id."""
        first = _add(NotificationKind.INFO)
        second = _add(NotificationKind.INFO)

        data = client.delete(f"/api/v1/notifications/{first}").json()

        assert [n["id"] for n in data["notifications"]] == [second]

    def test_remove_unknown(self, client: TestClient):
        """Test removing an unknown id leaves the feed untouched."""
        _add(NotificationKind.INFO)
        data = client.delete("/api/v1/notifications/1").json()
        assert len(data["notifications"]) == 1

    def test_clear(self, client: TestClient):
        """Test clearing the feed."""
        _add(NotificationKind.INFO)
        _add(NotificationKind.SUCCESS)

        data = client.delete("/api/v1/notifications").json()

        assert data["notifications"] == []
        assert data["total_height"] == 0
