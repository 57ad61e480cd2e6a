"""Data models for query execution.

Provides:
- Execution outcomes (success with timings, positioned failure)
- Execution metrics tracking
- Row window ("limit") parsing
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

if TYPE_CHECKING:
    import pyarrow as pa


class QueryKind(str, Enum):
    """What a successfully executed statement produced."""

    DDL = "ddl"
    DQL = "dql"


@dataclass
class ExecutionMetrics:
    """Metrics collected during query execution."""

    start_time: float = field(default_factory=time.perf_counter)
    executed_time: float | None = None
    end_time: float | None = None
    rows_returned: int = 0

    @property
    def duration_seconds(self) -> float:
        """Get query execution duration in seconds."""
        end = self.end_time or time.perf_counter()
        return end - self.start_time

    def mark_executed(self) -> None:
        """Record the moment the engine finished executing the statement."""
        self.executed_time = time.perf_counter()

    def complete(self, rows_returned: int = 0) -> None:
        """Mark query as complete and record final metrics."""
        self.end_time = time.perf_counter()
        self.rows_returned = rows_returned

    def timings(self) -> QueryTimings:
        """Split the measured duration into execute and fetch phases."""
        end = self.end_time or time.perf_counter()
        executed = self.executed_time or end
        return QueryTimings(
            execute_ms=(executed - self.start_time) * 1000,
            fetch_ms=(end - executed) * 1000,
        )


@dataclass(frozen=True)
class QueryTimings:
    """Timing summary shown alongside a query result."""

    execute_ms: float = 0.0
    fetch_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.execute_ms + self.fetch_ms


@dataclass
class QuerySuccess:
    """Outcome of a statement the engine accepted."""

    query: str
    kind: QueryKind
    count: int = 0
    table: pa.Table | None = None
    timings: QueryTimings = field(default_factory=QueryTimings)
    query_id: UUID = field(default_factory=uuid4)

    @property
    def columns(self) -> list[dict[str, str]]:
        """Column definitions with name and type."""
        if self.table is None:
            return []
        return [{"name": f.name, "type": str(f.type)} for f in self.table.schema]

    def summary(self) -> str:
        """One-line description of the result used in notifications."""
        rows = "row" if self.count == 1 else "rows"
        return (
            f"{self.count} {rows} in {self.timings.total_ms:.1f}ms "
            f"(execute: {self.timings.execute_ms:.1f}ms, fetch: {self.timings.fetch_ms:.1f}ms)"
        )


class QueryFailure(Exception):
    """Raised when the engine rejects a statement.

    ``offset`` is a 0-indexed character position inside the executed text.
    """

    def __init__(self, message: str, offset: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.offset = offset


class QueryCancelledError(Exception):
    """Raised when query is cancelled."""

    pass


class InvalidLimitError(ValueError):
    """Raised when a row window string cannot be parsed."""

    pass


def parse_limit(limit: str | None) -> tuple[int, int | None]:
    """Parse a row window.

    Args:
        limit: ``"lo,hi"`` selects rows ``[lo, hi)``; ``"n"`` selects the first n
            rows. None or an empty string selects everything.

    Returns:
        Tuple of (lo, hi) where hi is None for an open window.

    Raises:
        InvalidLimitError: If the window is malformed.
    """
    if limit is None or not limit.strip():
        return 0, None

    parts = [part.strip() for part in limit.split(",")]
    if len(parts) > 2:
        raise InvalidLimitError(f"Invalid limit: {limit!r}")
    try:
        bounds = [int(part) for part in parts]
    except ValueError as e:
        raise InvalidLimitError(f"Invalid limit: {limit!r}") from e

    lo, hi = (0, bounds[0]) if len(bounds) == 1 else (bounds[0], bounds[1])

    if lo < 0 or hi < lo:
        raise InvalidLimitError(f"Invalid limit: {limit!r}")
    return lo, hi
