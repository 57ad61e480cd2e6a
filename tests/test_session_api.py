"""Tests for session API routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from query_console.config import reset_settings
from query_console.main import app
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


def _put_document(client: TestClient, text: str, **extra) -> dict:
    response = client.put("/api/v1/session/document", json={"text": text, **extra})
    assert response.status_code == 200
    return response.json()


class TestSessionState:
    """Tests for reading and replacing the session document."""

    def test_initial_state(self, client: TestClient):
        """Test a new session is idle with an empty document."""
        response = client.get("/api/v1/session")
        assert response.status_code == 200

        data = response.json()
        assert data["state"] == "idle"
        assert data["text"] == ""
        assert data["cursor"] == {"row": 1, "column": 0}
        assert data["selection"] is None
        assert data["markers"] == []
        assert data["result"] is None

    def test_put_document_moves_cursor_to_end(self, client: TestClient):
        """Test the cursor defaults to the end of the new text."""
        data = _put_document(client, "select 1;\nselect 22;")
        assert data["text"] == "select 1;\nselect 22;"
        assert data["cursor"] == {"row": 2, "column": 10}

    def test_put_document_with_cursor_and_selection(self, client: TestClient):
        """Test explicit cursor and selection are applied."""
        data = _put_document(
            client,
            "select 1;\nselect 2;",
            cursor={"row": 1, "column": 2},
            selection={"start": {"row": 2, "column": 0}, "end": {"row": 2, "column": 8}},
        )
        assert data["selection"] == {
            "start": {"row": 2, "column": 0},
            "end": {"row": 2, "column": 8},
        }

    def test_invalid_cursor_rejected(self, client: TestClient):
        """Test rows are 1-indexed."""
        response = client.put(
            "/api/v1/session/document",
            json={"text": "x", "cursor": {"row": 0, "column": 0}},
        )
        assert response.status_code == 422

    def test_no_session_without_lifespan(self):
        """Test routes report 503 when no session is open."""
        client = TestClient(app)
        response = client.get("/api/v1/session")
        assert response.status_code == 503
        assert response.json()["detail"] == "No open session"


class TestToggleRun:
    """Tests for running the statement under the cursor."""

    def test_run_statement_under_cursor(self, client: TestClient):
        """Test the statement around the cursor is executed."""
        _put_document(client, "select 1;\nselect 2;", cursor={"row": 2, "column": 3})

        response = client.post("/api/v1/session/toggle-run", params={"wait": "true"})
        assert response.status_code == 200

        data = response.json()
        assert data["state"] == "idle"
        assert data["result"]["query"] == "select 2"
        assert data["result"]["kind"] == "dql"
        assert data["result"]["count"] == 1
        assert data["result"]["rows"] == [[2]]

    def test_run_selection(self, client: TestClient):
        """Test a selection is executed instead of the statement at the cursor."""
        _put_document(
            client,
            "select 1 as a, 5 as b;",
            selection={"start": {"row": 1, "column": 0}, "end": {"row": 1, "column": 13}},
        )

        data = client.post("/api/v1/session/toggle-run", params={"wait": "true"}).json()

        assert data["result"]["query"] == "select 1 as a"
        assert data["result"]["columns"][0]["name"] == "a"

    def test_row_window_applied(self, client: TestClient):
        """Test results are limited to the configured window."""
        _put_document(client, "select * from range(2500);")

        data = client.post("/api/v1/session/toggle-run", params={"wait": "true"}).json()

        assert data["result"]["count"] == 2500
        assert len(data["result"]["rows"]) == 1000

    def test_ddl_run(self, client: TestClient):
        """Test statements without a result set are reported as ddl."""
        _put_document(client, "create table t(a int);")

        data = client.post("/api/v1/session/toggle-run", params={"wait": "true"}).json()

        assert data["result"]["kind"] == "ddl"
        assert data["result"]["rows"] == []

    def test_syntax_error_marks_document(self, client: TestClient):
        """Test failed statements leave a syntax error marker."""
        _put_document(client, "select 1;\nselect * frm t;", cursor={"row": 2, "column": 2})

        data = client.post("/api/v1/session/toggle-run", params={"wait": "true"}).json()

        assert data["state"] == "idle"
        assert data["result"] is None
        assert len(data["markers"]) == 1
        assert data["markers"][0]["css_class"] == "syntax-error"
        assert data["markers"][0]["start"]["row"] == 2
        assert data["cursor"] == data["markers"][0]["start"]

        feed = client.get("/api/v1/notifications").json()
        assert feed["notifications"][0]["kind"] == "error"
        assert feed["notifications"][0]["title"] == "select * frm t"

    def test_nothing_to_run(self, client: TestClient):
        """Test an empty document does not start a run."""
        data = client.post("/api/v1/session/toggle-run", params={"wait": "true"}).json()
        assert data["state"] == "idle"
        assert client.get("/api/v1/notifications").json()["notifications"] == []


class TestRunQuery:
    """Tests for the run-query endpoint."""

    def test_append_and_run(self, client: TestClient):
        """Test a query is appended to the document and executed."""
        _put_document(client, "select 1;")

        response = client.post(
            "/api/v1/session/run-query",
            params={"wait": "true"},
            json={"query": "select 3"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["text"] == "select 1;\nselect 3;"
        assert data["result"]["rows"] == [[3]]

    def test_find_and_run(self, client: TestClient):
        """Test an existing query is found and executed."""
        _put_document(client, "select 1;\nselect 4;")

        data = client.post(
            "/api/v1/session/run-query",
            params={"wait": "true"},
            json={"query": "select 4", "append": False},
        ).json()

        assert data["text"] == "select 1;\nselect 4;"
        assert data["result"]["rows"] == [[4]]

    def test_empty_query_rejected(self, client: TestClient):
        """Test empty queries fail validation."""
        response = client.post("/api/v1/session/run-query", json={"query": ""})
        assert response.status_code == 422


class TestEditorEndpoints:
    """Tests for insert and key command endpoints."""

    def test_insert_text(self, client: TestClient):
        """Test text is inserted at the cursor."""
        _put_document(client, "select ;", cursor={"row": 1, "column": 7})

        data = client.post("/api/v1/session/insert", json={"text": "42"}).json()

        assert data["text"] == "select 42;"
        assert data["cursor"] == {"row": 1, "column": 9}

    def test_exec_command(self, client: TestClient):
        """Test registered commands can be triggered."""
        response = client.post("/api/v1/session/commands/focus_grid")
        assert response.status_code == 200

    def test_unknown_command(self, client: TestClient):
        """Test unknown commands return 404."""
        response = client.post("/api/v1/session/commands/explode")
        assert response.status_code == 404
        assert response.json()["detail"] == "Command not found: explode"
