"""Query executor for running console statements against DuckDB.

Provides:
- Asynchronous execution on a worker thread
- Row windowing of results as Arrow tables
- DDL/DQL classification
- Error positions recovered from DuckDB messages
- Cancellation via interrupt
"""

from __future__ import annotations

import asyncio
import re
import threading
from typing import TYPE_CHECKING

import duckdb
import pyarrow as pa

from query_console.config import get_settings
from query_console.observability import (
    decrement_active_queries,
    get_logger,
    get_tracer,
    increment_active_queries,
    record_query_duration,
    record_query_rows,
)
from query_console.query.engine import get_engine
from query_console.query.models import (
    ExecutionMetrics,
    QueryCancelledError,
    QueryFailure,
    QueryKind,
    QuerySuccess,
    parse_limit,
)

if TYPE_CHECKING:
    from query_console.config import Settings
    from query_console.query.engine import DuckDBEngine

logger = get_logger(__name__)

# DuckDB echoes the offending line followed by a caret line:
#   LINE 1: SELECT * FROM missing
#                         ^
ERROR_LINE_PATTERN = re.compile(r"LINE (\d+): (.*)\n( *)\^")

# Parser errors name the offending token: syntax error at or near "FORM"
NEAR_TOKEN_PATTERN = re.compile(r'at or near "(.+)"')

# Rows pulled per Arrow batch while counting a result.
FETCH_BATCH_ROWS = 10_000

TRUNCATION_MARKER = "..."

# Statements that report an affected-row count rather than a result set.
WRITE_KEYWORDS = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "DROP",
        "CREATE",
        "ALTER",
        "TRUNCATE",
        "MERGE",
        "GRANT",
        "REVOKE",
        "ATTACH",
        "DETACH",
        "COPY",
        "EXPORT",
        "IMPORT",
        "VACUUM",
        "CHECKPOINT",
        "LOAD",
        "INSTALL",
        "SET",
        "RESET",
        "USE",
        "BEGIN",
        "COMMIT",
        "ROLLBACK",
    }
)


def error_offset(query: str, message: str) -> int:
    """Recover the flat offset of an error inside ``query``.

    Args:
        query: The exact text that was executed.
        message: The DuckDB error message.

    Returns:
        0-indexed character offset into ``query``, or 0 when the message
        carries no position.
    """
    match = ERROR_LINE_PATTERN.search(message)
    if match is None:
        return 0

    line_number = int(match.group(1))
    echoed = match.group(2)
    caret_column = len(match.group(3)) - len(f"LINE {line_number}: ")

    lines = query.split("\n")
    if line_number < 1 or line_number > len(lines):
        return 0
    line = lines[line_number - 1]

    # Long lines are echoed as a window with "..." on either side.
    column = caret_column
    if echoed.startswith(TRUNCATION_MARKER):
        fragment = echoed[len(TRUNCATION_MARKER) :]
        if fragment.endswith(TRUNCATION_MARKER):
            fragment = fragment[: -len(TRUNCATION_MARKER)]
        base = line.find(fragment)
        if base >= 0:
            column = base + caret_column - len(TRUNCATION_MARKER)

    # The caret is drawn in display width, which drifts from character
    # columns after multibyte text. Snap to the named token when there is one.
    near = NEAR_TOKEN_PATTERN.search(message)
    if near is not None:
        column = _nearest_token(line, near.group(1), column)

    column = max(0, min(column, len(line)))
    preceding = sum(len(previous) + 1 for previous in lines[: line_number - 1])
    return preceding + column


def _nearest_token(line: str, token: str, column: int) -> int:
    """Return the start of the occurrence of ``token`` in ``line`` closest to ``column``."""
    pattern = re.escape(token)
    if token[0].isalnum() or token[0] == "_":
        pattern = r"(?<!\w)" + pattern
    if token[-1].isalnum() or token[-1] == "_":
        pattern = pattern + r"(?!\w)"

    starts = [match.start() for match in re.finditer(pattern, line)]
    if not starts:
        return column
    return min(starts, key=lambda start: abs(start - column))


def _operation(query: str) -> str:
    words = query.split(None, 1)
    return words[0].upper() if words else ""


def _fetch_window(
    relation: duckdb.DuckDBPyConnection,
    window: tuple[int, int | None],
    cancel_event: threading.Event,
) -> tuple[pa.Table, int]:
    """Stream a result in Arrow batches, keeping only rows inside ``window``.

    Returns:
        The windowed table and the total number of rows in the result.
    """
    lo, hi = window
    reader = relation.fetch_record_batch(FETCH_BATCH_ROWS)
    kept: list[pa.RecordBatch] = []
    count = 0
    for batch in reader:
        if cancel_event.is_set():
            break
        batch_start = count
        count += batch.num_rows
        start = max(lo, batch_start)
        stop = count if hi is None else min(hi, count)
        if stop > start:
            kept.append(batch.slice(start - batch_start, stop - start))
    return pa.Table.from_batches(kept, schema=reader.schema), count


class QueryExecutor:
    """Executes console statements, one at a time.

    Provides:
    - Async ``execute`` that never blocks the event loop
    - ``abort`` to interrupt the statement in flight
    - Execution metrics
    """

    def __init__(
        self, engine: DuckDBEngine | None = None, settings: Settings | None = None
    ) -> None:
        """Initialize the executor.

        Args:
            engine: DuckDB engine to use. If None, uses global engine.
            settings: Settings for the default row window. If None, uses global settings.
        """
        self._engine = engine or get_engine()
        self._settings = settings or get_settings()
        self._cancel_event: threading.Event | None = None
        self._active_conn: duckdb.DuckDBPyConnection | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Check if a statement is in flight."""
        with self._lock:
            return self._cancel_event is not None

    async def execute(self, query: str, limit: str | None = None) -> QuerySuccess:
        """Execute a statement.

        Args:
            query: Statement text to execute.
            limit: Row window, ``"lo,hi"`` or ``"n"``. Defaults to the configured limit.

        Returns:
            QuerySuccess with the result table (DQL) or no table (DDL).

        Raises:
            QueryFailure: If the engine rejects the statement.
            QueryCancelledError: If the statement is aborted.
            InvalidLimitError: If the row window is malformed.
        """
        window = parse_limit(limit if limit is not None else self._settings.query.limit)
        cancel_event = threading.Event()
        with self._lock:
            self._cancel_event = cancel_event

        increment_active_queries()
        try:
            return await asyncio.to_thread(self._run, query, window, cancel_event)
        finally:
            decrement_active_queries()
            with self._lock:
                if self._cancel_event is cancel_event:
                    self._cancel_event = None

    def _run(
        self, query: str, window: tuple[int, int | None], cancel_event: threading.Event
    ) -> QuerySuccess:
        """Run the statement on the calling (worker) thread."""
        if not self._engine.is_initialized:
            self._engine.initialize()

        metrics = ExecutionMetrics()
        tracer = get_tracer()

        with tracer.start_as_current_span("duckdb.query") as span:
            success = QuerySuccess(query=query, kind=QueryKind.DDL)
            span.set_attribute("db.system", "duckdb")
            span.set_attribute("db.operation", _operation(query))
            span.set_attribute("query.id", str(success.query_id))

            try:
                with self._engine.get_connection() as conn:
                    with self._lock:
                        self._active_conn = conn
                    try:
                        if cancel_event.is_set():
                            raise QueryCancelledError("Query was cancelled")

                        relation = conn.execute(query)
                        metrics.mark_executed()

                        if relation.description and _operation(query) not in WRITE_KEYWORDS:
                            success.kind = QueryKind.DQL
                            success.table, success.count = _fetch_window(
                                relation, window, cancel_event
                            )
                    finally:
                        # Still under the engine lock; the next run owns the slot after it.
                        with self._lock:
                            if self._active_conn is conn:
                                self._active_conn = None
            except duckdb.Error as e:
                if cancel_event.is_set():
                    record_query_duration(metrics.duration_seconds, "cancelled")
                    raise QueryCancelledError("Query was cancelled") from e
                record_query_duration(metrics.duration_seconds, "failed")
                message = str(e)
                offset = error_offset(query, message)
                span.set_attribute("query.error_offset", offset)
                logger.info("query_failed", query_id=str(success.query_id), offset=offset)
                raise QueryFailure(message, offset) from e

            if cancel_event.is_set():
                record_query_duration(metrics.duration_seconds, "cancelled")
                raise QueryCancelledError("Query was cancelled")

            metrics.complete(rows_returned=success.count)
            success.timings = metrics.timings()
            span.set_attribute("query.kind", success.kind.value)
            span.set_attribute("query.rows", success.count)

        record_query_duration(metrics.duration_seconds, "completed")
        record_query_rows(success.count)
        logger.info(
            "query_completed",
            query_id=str(success.query_id),
            kind=success.kind.value,
            rows=success.count,
        )
        return success

    def abort(self) -> bool:
        """Abort the statement in flight.

        Returns:
            True if a statement was running, False otherwise.
        """
        with self._lock:
            cancel_event = self._cancel_event
            active_conn = self._active_conn

            if cancel_event is None:
                return False

            cancel_event.set()

            if active_conn is not None:
                try:
                    active_conn.interrupt()
                except duckdb.Error:
                    logger.warning("query_interrupt_failed")

        logger.info("query_aborted")
        return True
