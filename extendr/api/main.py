"""
FastAPI application for Extendr.

Exposes agent sessions over HTTP: create a session, send it messages,
cancel a running request, and inspect the files in its workspace.

Usage:
    # Development server with auto-reload
    uvicorn extendr.api.main:app --reload --host 0.0.0.0 --port 8000

    # Debug mode (verbose logging)
    LOG_LEVEL=DEBUG uvicorn extendr.api.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import get_config, setup_logging
from ..models import AppConfig
from ..tools.definitions import TOOL_DEFINITIONS
from ..tracing import init_tracing_client, shutdown_tracing
from .routes import health, sessions
from .store import SessionStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    config: AppConfig = app.state.config
    logger.info("Starting Extendr API server")

    logger.info("=" * 60)
    logger.info("AGENT CONFIGURATION")
    logger.info(f"  Provider: {config.provider.type.value}")
    logger.info(f"  Model: {config.provider.model or '(provider default)'}")
    logger.info(f"  Max Iterations: {config.agent.max_iterations}")
    logger.info(f"  Max Consecutive Errors: {config.agent.max_consecutive_errors}")
    logger.info(f"  Workspaces: {config.server.workspaces_root}")

    logger.info("-" * 60)
    logger.info("REGISTERED TOOLS")
    for tool in TOOL_DEFINITIONS:
        logger.info(f"  - {tool.name.value}: {tool.description[:60]}...")

    logger.info("-" * 60)
    logger.info("LANGFUSE OBSERVABILITY")
    tracing_client = init_tracing_client(config.langfuse)
    if tracing_client.enabled:
        logger.info("  Status: ENABLED")
        logger.info(f"  Host: {config.langfuse.host or 'https://cloud.langfuse.com'}")
    else:
        logger.info("  Status: DISABLED")
        if tracing_client.error:
            logger.info(f"  Reason: {tracing_client.error}")

    logger.info("=" * 60)

    yield

    logger.info("Shutting down Extendr API server")
    app.state.sessions.close_all()
    shutdown_tracing()


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Application configuration; loaded with get_config() when omitted

    Returns:
        Configured FastAPI application instance.
    """
    config = config or get_config()

    app = FastAPI(
        title="Extendr API",
        description=(
            "Agent sessions that build and edit Chrome extensions in a sandboxed "
            "workspace using a tool-calling LLM."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.config = config
    app.state.sessions = SessionStore(config)

    # CORS middleware - allow all origins for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(sessions.router, tags=["Sessions"])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Log validation errors before returning 400 response."""
        logger.warning(
            "Validation error on %s %s: %s", request.method, request.url.path, exc.errors()
        )
        body = await request.body()
        logger.debug("Request body: %s", body.decode("utf-8", errors="replace")[:1000])
        return JSONResponse(
            status_code=400,
            content={"detail": jsonable_errors(exc)},
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors reduced to JSON-safe fields."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


_config = get_config()
setup_logging(_config.log_level)

# Create the application instance
app = create_app(_config)


def run_server():
    """
    Run the server using uvicorn.

    This is the entry point for running the server programmatically.
    """
    import uvicorn

    uvicorn.run(
        "extendr.api.main:app",
        host=_config.server.host,
        port=_config.server.port,
        reload=_config.server.reload,
        workers=1 if _config.server.reload else _config.server.workers,
    )


if __name__ == "__main__":
    run_server()
