"""Tests for export API routes."""

from __future__ import annotations

from datetime import date, datetime

import pyarrow as pa
import pytest
from fastapi.testclient import TestClient

from query_console.api.routes.export import CSVExportError, _format_value, _sanitize_filename
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


class TestFormatValue:
    """Tests for the _format_value helper function."""

    def test_none(self):
        assert _format_value(None) == ""

    def test_bool(self):
        assert _format_value(True) == "true"
        assert _format_value(False) == "false"

    def test_datetime_and_date(self):
        assert _format_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
        assert _format_value(date(2024, 1, 2)) == "2024-01-02"

    def test_bytes(self):
        assert _format_value(b"\x01\xff") == "01ff"

    def test_arrow_scalars(self):
        assert _format_value(pa.scalar(5)) == "5"
        assert _format_value(pa.scalar(None, type=pa.int64())) == ""
        assert _format_value(pa.scalar(True)) == "true"

    def test_other_values(self):
        assert _format_value(1.5) == "1.5"
        assert _format_value("text") == "text"


class TestSanitizeFilename:
    """Tests for download filename sanitising."""

    def test_unsafe_characters_replaced(self):
        assert _sanitize_filename('a/b\\c"d') == "a_b_c_d"

    def test_length_capped(self):
        assert len(_sanitize_filename("x" * 500)) == 200


class TestCSVExport:
    """Tests for GET /api/v1/export/csv."""

    def test_export_query(self, client: TestClient):
        """Test exporting an explicit query."""
        response = client.get(
            "/api/v1/export/csv", params={"query": "select 1 as a, 'x,y' as b"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == 'attachment; filename="query.csv"'
        assert response.text == 'a,b\r\n1,"x,y"\r\n'

    def test_custom_filename(self, client: TestClient):
        """Test the download filename can be chosen."""
        response = client.get(
            "/api/v1/export/csv", params={"query": "select 1", "filename": "my/export"}
        )
        assert response.headers["content-disposition"] == 'attachment; filename="my_export.csv"'

    def test_export_ignores_row_window(self, client: TestClient):
        """Test every row is exported, not only the result window."""
        response = client.get(
            "/api/v1/export/csv", params={"query": "select * from range(2500) t(i)"}
        )

        lines = response.text.strip().split("\r\n")
        assert lines[0] == "i"
        assert len(lines) == 2501
        assert lines[-1] == "2499"

    def test_export_statement_at_cursor(self, client: TestClient):
        """Test the statement at the cursor is exported when no query is given."""
        client.put(
            "/api/v1/session/document",
            json={"text": "select 7 as n;\nselect 8 as m;", "cursor": {"row": 1, "column": 2}},
        )

        response = client.get("/api/v1/export/csv")

        assert response.status_code == 200
        assert response.text == "n\r\n7\r\n"

    def test_nothing_to_export(self, client: TestClient):
        """Test an empty document without a query is rejected."""
        response = client.get("/api/v1/export/csv")
        assert response.status_code == 400
        assert response.json()["detail"] == "Nothing to export"

    def test_invalid_query(self, client: TestClient):
        """Test engine errors are reported as 400."""
        response = client.get("/api/v1/export/csv", params={"query": "select * from missing"})

        assert response.status_code == 400
        assert "missing" in response.json()["detail"]["error"]

    def test_ddl_exports_empty_body(self, client: TestClient):
        """Test statements without a result set produce an empty file."""
        response = client.get("/api/v1/export/csv", params={"query": "create table t(a int)"})
        assert response.status_code == 200
        assert response.text == ""

    def test_export_size_limit(self, monkeypatch: pytest.MonkeyPatch):
        """Test exports larger than the configured maximum are aborted."""
        monkeypatch.setenv("QUERY_CONSOLE_EXPORT__MAX_SIZE_BYTES", "64")

        with TestClient(app) as client, pytest.raises(CSVExportError, match="64 bytes"):
            client.get("/api/v1/export/csv", params={"query": "select * from range(5000)"})
