"""Session API routes for driving the query editor.

Provides endpoints for:
- Reading the session state
- Replacing the document, cursor and selection
- Toggling the run of the current statement
- Finding and running a literal query
- Inserting text and running key commands
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from query_console.api.routes.utils import SessionDep, _convert_value
from query_console.models.session import (
    DocumentUpdateRequest,
    InsertTextRequest,
    MarkerModel,
    PositionModel,
    ResultSummary,
    RunQueryRequest,
    SelectionModel,
    SessionResponse,
)
from query_console.session.channels import InsertText, RunQuery, ToggleRun
from query_console.session.console import ConsoleSession

router = APIRouter(prefix="/api/v1/session", tags=["session"])


def _result_summary(session: ConsoleSession) -> ResultSummary | None:
    result = session.controller.result
    if result is None:
        return None

    rows: list[list] = []
    if result.table is not None:
        for batch in result.table.to_batches():
            for row_idx in range(batch.num_rows):
                rows.append(
                    [_convert_value(batch.column(col)[row_idx]) for col in range(batch.num_columns)]
                )

    return ResultSummary(
        query_id=str(result.query_id),
        query=result.query,
        kind=result.kind.value,
        count=result.count,
        columns=result.columns,
        rows=rows,
        execute_ms=result.timings.execute_ms,
        fetch_ms=result.timings.fetch_ms,
    )


def _session_response(session: ConsoleSession) -> SessionResponse:
    editor = session.editor
    pending = session.controller.pending_request
    return SessionResponse(
        state=session.controller.state.value,
        text=editor.text,
        cursor=PositionModel.from_position(editor.cursor),
        selection=SelectionModel.from_selection(editor.selection),
        markers=[MarkerModel.from_marker(marker) for marker in editor.markers],
        pending_query=pending.query if pending is not None else None,
        result=_result_summary(session),
    )


@router.get("", response_model=SessionResponse)
async def get_session_state(session: SessionDep) -> SessionResponse:
    """Get the session state, document and latest result."""
    return _session_response(session)


@router.put("/document", response_model=SessionResponse)
async def update_document(request: DocumentUpdateRequest, session: SessionDep) -> SessionResponse:
    """Replace the editor contents.

    The cursor defaults to the end of the text. A selection, when given,
    takes precedence over the cursor for the next run.
    """
    editor = session.editor
    editor.set_text(request.text)
    if request.cursor is not None:
        editor.move_caret(request.cursor.to_position())
    if request.selection is not None:
        editor.select(request.selection.to_selection())
    return _session_response(session)


@router.post("/toggle-run", response_model=SessionResponse)
async def toggle_run(
    session: SessionDep,
    wait: bool = Query(default=False, description="Wait for the run to settle"),
) -> SessionResponse:
    """Start running the current statement, or stop the run in flight.

    Args:
        session: The open session.
        wait: When true, respond only after the run completes.

    Returns:
        SessionResponse after the toggle (or after completion with wait).
    """
    session.channels.toggle_run.publish(ToggleRun())
    if wait:
        await session.controller.wait()
    return _session_response(session)


@router.post("/run-query", response_model=SessionResponse)
async def run_query(
    request: RunQueryRequest,
    session: SessionDep,
    wait: bool = Query(default=False, description="Wait for the run to settle"),
) -> SessionResponse:
    """Find or append a literal query and run it."""
    session.channels.run_query.publish(RunQuery(query=request.query, append=request.append))
    if wait:
        await session.controller.wait()
    return _session_response(session)


@router.post("/insert", response_model=SessionResponse)
async def insert_text(request: InsertTextRequest, session: SessionDep) -> SessionResponse:
    """Insert text at the cursor."""
    session.channels.insert_text.publish(InsertText(text=request.text))
    return _session_response(session)


@router.post("/commands/{name}", response_model=SessionResponse)
async def exec_command(name: str, session: SessionDep) -> SessionResponse:
    """Run a registered keyboard command by name.

    Raises:
        HTTPException: 404 if no command has that name.
    """
    if not session.editor.exec_command(name):
        raise HTTPException(status_code=404, detail=f"Command not found: {name}")
    return _session_response(session)
