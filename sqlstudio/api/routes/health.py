"""
Health Check Routes

FastAPI endpoints for service health and readiness checks.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from sqlstudio import __version__
from sqlstudio.models.api import HealthResponse, ReadinessResponse
from sqlstudio.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK whenever the process is serving requests.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness() -> JSONResponse:
    """
    Readiness check.

    Checks:
    - Connection registry is initialized
    - At least one tool is registered

    Returns:
        200 OK if all checks pass
        503 Service Unavailable if any check fails
    """
    from sqlstudio.api.main import app_state

    checks = {
        "connections": app_state.get("connections") is not None,
        "tools": bool(ToolCatalog.list_definitions()),
    }
    all_ready = all(checks.values())
    for name, ok in checks.items():
        if not ok:
            logger.warning(f"Readiness check failed: {name}")

    response_data = ReadinessResponse(
        status="ready" if all_ready else "not_ready",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
    status_code = status.HTTP_200_OK if all_ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response_data.model_dump())
