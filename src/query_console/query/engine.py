"""DuckDB engine for console queries.

Provides a connection manager that:
- Opens the configured DuckDB database
- Applies memory and thread limits from configuration
- Hands out cursors serialised by a lock
- Provides a health check
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

import duckdb

from query_console.config import get_settings
from query_console.observability import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

    from query_console.config import Settings

logger = get_logger(__name__)


class DuckDBEngine:
    """DuckDB connection manager.

    This class manages DuckDB connections with:
    - Configurable database path, memory limits and thread counts
    - Thread-safe connection handling
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the DuckDB engine.

        Args:
            settings: Application settings. If None, uses cached settings.
        """
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._connection: duckdb.DuckDBPyConnection | None = None

    @property
    def database(self) -> str:
        """Get the configured database path."""
        return self._settings.engine.database

    def _create_connection(self) -> duckdb.DuckDBPyConnection:
        """Create a new DuckDB connection with configured settings.

        Returns:
            Configured DuckDB connection.
        """
        engine_config = self._settings.engine
        conn = duckdb.connect(engine_config.database)
        conn.execute(f"SET memory_limit = '{engine_config.memory_limit}'")
        conn.execute(f"SET threads = {engine_config.threads}")

        return conn

    def initialize(self) -> None:
        """Open the database connection.

        Safe to call more than once.
        """
        with self._lock:
            if self._connection is not None:
                return

            self._connection = self._create_connection()
            logger.info("duckdb_engine_initialized", database=self.database)

    def close(self) -> None:
        """Close the engine and release resources."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def get_connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Get a DuckDB cursor for query execution.

        Yields:
            DuckDB connection cursor for query execution.

        Raises:
            RuntimeError: If engine is not initialized.
        """
        if self._connection is None:
            raise RuntimeError("Engine not initialized. Call initialize() first.")

        with self._lock:
            cursor = self._connection.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    def health_check(self) -> dict[str, bool | str]:
        """Check health of the DuckDB connection.

        Returns:
            Dictionary with health status:
            - healthy: Overall health status
            - duckdb: DuckDB connection status
            - error: Error message if unhealthy
        """
        result: dict[str, bool | str] = {
            "healthy": False,
            "duckdb": False,
        }

        if self._connection is None:
            result["error"] = "Engine not initialized"
            return result

        try:
            self._connection.execute("SELECT 1").fetchone()
        except Exception as e:
            result["error"] = f"DuckDB error: {e}"
            return result

        result["duckdb"] = True
        result["healthy"] = True
        return result

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._connection is not None


_engine: DuckDBEngine | None = None


def get_engine() -> DuckDBEngine:
    """Get the global DuckDB engine instance (cached).

    Returns:
        The global DuckDB engine.
    """
    global _engine
    if _engine is None:
        _engine = DuckDBEngine()
    return _engine


def reset_engine() -> None:
    """Reset the global engine (useful for testing)."""
    global _engine
    if _engine is not None:
        _engine.close()
    _engine = None
