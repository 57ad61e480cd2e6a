"""Shared helpers for API routes.

Provides:
- Session lookup from the application state
- Arrow value conversion for JSON output
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from query_console.session.console import ConsoleSession


def get_session(request: Request) -> ConsoleSession:
    """Return the session opened by the application lifespan.

    Raises:
        HTTPException: 503 if no session is open.
    """
    session = getattr(request.app.state, "session", None)
    if session is None or not session.is_open:
        raise HTTPException(status_code=503, detail="No open session")
    return session


SessionDep = Annotated[ConsoleSession, Depends(get_session)]


def _convert_value(value: object) -> object:
    """Convert Arrow values to JSON-serializable Python types."""
    if value is None:
        return None
    if hasattr(value, "as_py"):
        return value.as_py()
    return value
