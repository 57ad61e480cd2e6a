"""Main entry point for Query Console."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from query_console import __version__
from query_console.api.routes.export import router as export_router
from query_console.api.routes.health import router as health_router
from query_console.api.routes.notifications import router as notifications_router
from query_console.api.routes.session import router as session_router
from query_console.observability import setup_opentelemetry, shutdown_opentelemetry
from query_console.query.engine import get_engine
from query_console.session.console import ConsoleSession


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - engine, editing session and telemetry."""
    setup_opentelemetry(app)
    get_engine().initialize()
    session = ConsoleSession()
    session.open()
    app.state.session = session
    yield
    session.close()
    app.state.session = None
    get_engine().close()
    shutdown_opentelemetry()


app = FastAPI(
    title="Query Console",
    description="Statement-aware query editing sessions with positioned errors "
    "and a height-bounded result feed",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(export_router)
app.include_router(health_router)
app.include_router(notifications_router)
app.include_router(session_router)


def main() -> None:
    """Run the application server."""
    import uvicorn

    from query_console.config import get_settings

    settings = get_settings()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
