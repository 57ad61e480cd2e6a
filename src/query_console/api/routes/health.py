"""Health and readiness endpoints for monitoring.

Provides:
- GET /health - Returns application health status
- GET /ready - Returns readiness for traffic
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from query_console import __version__
from query_console.query.engine import get_engine

router = APIRouter(tags=["health"])


class ComponentHealth(BaseModel):
    """Health status of a component."""

    healthy: bool = Field(..., description="Whether the component is healthy.")
    error: str | None = Field(default=None, description="Error message if unhealthy.")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(..., description="Overall status: healthy, degraded, or unhealthy.")
    version: str = Field(..., description="Application version.")
    components: dict[str, ComponentHealth] = Field(
        ...,
        description="Health status of individual components.",
    )


class ReadyResponse(BaseModel):
    """Response for readiness check endpoint."""

    ready: bool = Field(..., description="Whether the application is ready for traffic.")
    reason: str | None = Field(default=None, description="Reason if not ready.")


def _session_open(request: Request) -> bool:
    session = getattr(request.app.state, "session", None)
    return session is not None and session.is_open


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Check application health.

    Checks DuckDB connectivity and whether an editing session is open.

    Returns:
        HealthResponse with status, version, and component health.
        Returns 503 status code if unhealthy.
    """
    components: dict[str, ComponentHealth] = {}

    try:
        engine = get_engine()
        if not engine.is_initialized:
            engine.initialize()

        engine_health = engine.health_check()
        components["duckdb"] = ComponentHealth(
            healthy=bool(engine_health.get("duckdb", False)),
            error=None if engine_health.get("duckdb") else str(engine_health.get("error")),
        )
    except Exception as e:
        components["duckdb"] = ComponentHealth(healthy=False, error=str(e))

    session_open = _session_open(request)
    components["session"] = ComponentHealth(
        healthy=session_open,
        error=None if session_open else "No open session",
    )

    if all(c.healthy for c in components.values()):
        status = "healthy"
    elif any(c.healthy for c in components.values()):
        status = "degraded"
        response.status_code = 503
    else:
        status = "unhealthy"
        response.status_code = 503

    return HealthResponse(
        status=status,
        version=__version__,
        components=components,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(request: Request, response: Response) -> ReadyResponse:
    """Check application readiness for traffic.

    Requires an initialized, healthy engine and an open session.

    Returns:
        ReadyResponse with ready status.
        Returns 503 status code if not ready.
    """
    try:
        engine = get_engine()
        if not engine.is_initialized:
            response.status_code = 503
            return ReadyResponse(ready=False, reason="Engine not initialized")

        engine_health = engine.health_check()
        if not engine_health.get("healthy", False):
            response.status_code = 503
            return ReadyResponse(
                ready=False,
                reason=str(engine_health.get("error", "Health check failed")),
            )
    except Exception as e:
        response.status_code = 503
        return ReadyResponse(ready=False, reason=str(e))

    if not _session_open(request):
        response.status_code = 503
        return ReadyResponse(ready=False, reason="No open session")

    return ReadyResponse(ready=True)
