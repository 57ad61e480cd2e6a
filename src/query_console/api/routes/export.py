"""Export API routes for downloading query results.

Provides endpoints for:
- CSV export of a statement (or the statement at the cursor) as a streaming download
"""

from __future__ import annotations

import csv
import io
from collections.abc import AsyncGenerator
from datetime import date, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from query_console.api.routes.utils import SessionDep
from query_console.config import get_settings
from query_console.observability import get_logger
from query_console.query.executor import QueryExecutor
from query_console.query.models import QueryCancelledError, QueryFailure

if TYPE_CHECKING:
    import pyarrow as pa

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/export", tags=["export"])

CHUNK_SIZE = 8192


def _format_value(value: object) -> str:
    """Format a value for CSV output."""
    if value is None:
        return ""
    if hasattr(value, "as_py"):
        value = value.as_py()
        if value is None:
            return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


class CSVExportError(Exception):
    """Error during CSV export streaming."""


def _sanitize_filename(filename: str) -> str:
    # Cross-platform filesystem and HTTP header safety
    for char in '"/<>:\\|?*\x00\n\r':
        filename = filename.replace(char, "_")
    return filename[:200]


async def _stream_csv(table: pa.Table | None, max_size_bytes: int) -> AsyncGenerator[bytes]:
    """Stream an Arrow table as CSV.

    Args:
        table: Result table, or None for statements without rows.
        max_size_bytes: Maximum export size in bytes.

    Yields:
        CSV data chunks.

    Raises:
        CSVExportError: If the export grows beyond ``max_size_bytes``.
    """
    if table is None:
        return

    bytes_written = 0

    header_buffer = io.StringIO()
    csv.writer(header_buffer).writerow(table.schema.names)
    header_bytes = header_buffer.getvalue().encode("utf-8")
    bytes_written += len(header_bytes)
    yield header_bytes

    for batch in table.to_batches():
        row_buffer = io.StringIO()
        row_writer = csv.writer(row_buffer)

        for row_idx in range(batch.num_rows):
            row = [_format_value(batch.column(col)[row_idx]) for col in range(batch.num_columns)]
            row_writer.writerow(row)

            if row_buffer.tell() >= CHUNK_SIZE:
                chunk = row_buffer.getvalue().encode("utf-8")
                bytes_written += len(chunk)
                if bytes_written > max_size_bytes:
                    raise CSVExportError(f"Export size exceeds maximum of {max_size_bytes} bytes")
                yield chunk
                row_buffer = io.StringIO()
                row_writer = csv.writer(row_buffer)

        remaining = row_buffer.getvalue()
        if remaining:
            chunk = remaining.encode("utf-8")
            bytes_written += len(chunk)
            if bytes_written > max_size_bytes:
                raise CSVExportError(f"Export size exceeds maximum of {max_size_bytes} bytes")
            yield chunk


@router.get("/csv")
async def export_csv(
    session: SessionDep,
    query: str | None = Query(
        default=None,
        description="Statement to export. Defaults to the statement at the cursor.",
    ),
    filename: str | None = Query(
        default=None,
        description="Filename for the download (without extension).",
    ),
) -> StreamingResponse:
    """Execute a statement and download every row as CSV.

    Args:
        session: The open session.
        query: Statement text; when omitted, the current selection or the
            statement at the cursor is used.
        filename: Custom filename.

    Returns:
        StreamingResponse with CSV content.

    Raises:
        HTTPException: 400 if there is nothing to export or the engine rejects
            the statement, 409 if the export was cancelled.
    """
    settings = get_settings()

    if query is None:
        editor = session.editor
        request = session.extractor.extract(editor.document(), editor.cursor, editor.selection)
        query = request.query if request is not None else None
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Nothing to export")

    executor = QueryExecutor()
    try:
        result = await executor.execute(query, limit="")
    except QueryFailure as e:
        raise HTTPException(
            status_code=400, detail={"error": e.message, "position": e.offset}
        ) from e
    except QueryCancelledError as e:
        raise HTTPException(status_code=409, detail="Export was cancelled") from e

    logger.info("csv_export_started", query_id=str(result.query_id), rows=result.count)

    name = _sanitize_filename(filename or settings.export.filename)
    headers = {
        "Content-Disposition": f'attachment; filename="{name}.csv"',
        "Cache-Control": "no-cache",
    }

    return StreamingResponse(
        _stream_csv(result.table, settings.export.max_size_bytes),
        media_type="text/csv; charset=utf-8",
        headers=headers,
    )
