"""Registered database connections."""

from fastapi import APIRouter

from sqlstudio.models.database import DatabaseConnectionSummary

router = APIRouter()


@router.get("/connections", response_model=list[DatabaseConnectionSummary])
async def list_connections() -> list[DatabaseConnectionSummary]:
    """List connections without their URLs."""
    from sqlstudio.api.main import app_state

    connections = app_state.get("connections")
    if connections is None:
        return []
    return [
        DatabaseConnectionSummary.from_connection(connection)
        for connection in connections.list_connections()
    ]
