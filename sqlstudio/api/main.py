"""
FastAPI Application

Main application for the SQL Studio assistant with:
- Lifespan management for the connection registry and tool catalog
- CORS middleware for the studio frontend
- Exception handlers for connector errors
- Streaming assistant, tools, connections and health endpoints

Usage:
    uvicorn sqlstudio.api.main:app --reload --port 8000
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlstudio import __version__
from sqlstudio.api.routes import ai_stream, connections, health, tools
from sqlstudio.config import get_settings
from sqlstudio.connectors.base import ConnectionError as ConnectorConnectionError
from sqlstudio.connectors.base import QueryError
from sqlstudio.database.registry import ConnectionRegistry
from sqlstudio.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)

# Process-wide state shared by the routes
app_state = {
    "connections": None,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan context manager for startup and shutdown.

    Initializes:
    - Built-in tools and their YAML policy
    - Connection registry (connections file + DATABASE_URL)
    """
    import sqlstudio.tools.builtin  # noqa: F401  registers the built-in tools

    config = get_settings()
    logger.info(f"Starting {config.app_name} API server...")

    try:
        ToolCatalog.load_policy_config(config.tools.policy_path)
        registry = ConnectionRegistry.from_settings(config.database)
        app_state["connections"] = registry
        if not len(registry):
            logger.warning("No database connections configured; the agent runs without tools.")
        logger.info(
            f"{config.app_name} API server started",
            extra={
                "connections": len(registry),
                "tools": len(ToolCatalog.list_definitions()),
            },
        )

        yield  # Application runs here

    finally:
        logger.info(f"Shutting down {config.app_name} API server...")
        if app_state["connections"] is not None:
            try:
                await app_state["connections"].close()
                logger.info("Database connectors closed")
            except Exception as e:
                logger.error(f"Error closing connectors: {e}")
            app_state["connections"] = None


app = FastAPI(
    title="SQL Studio API",
    description="Multi-database SQL studio with a tool-calling AI assistant",
    version=__version__,
    lifespan=lifespan,
)

config = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConnectorConnectionError)
async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """Handle database connection errors."""
    logger.error(f"Database connection error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "connection_error",
            "message": "Database connection failed. Please try again later.",
        },
    )


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    """Handle query execution errors."""
    logger.error(f"Query execution error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "query_error",
            "message": str(exc),
        },
    )


app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(ai_stream.router, prefix="/api/v1", tags=["ai"])
app.include_router(tools.router, prefix="/api/v1", tags=["tools"])
app.include_router(connections.router, prefix="/api/v1", tags=["connections"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "SQL Studio API",
        "version": __version__,
        "description": "Multi-database SQL studio with a tool-calling AI assistant",
        "docs": "/docs",
    }
