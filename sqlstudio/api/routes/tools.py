"""Tool catalog and direct execution endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from sqlstudio.config import get_settings
from sqlstudio.database.registry import UnknownConnectionError
from sqlstudio.models.api import ToolExecuteRequest, ToolExecuteResponse, ToolInfo
from sqlstudio.tools.base import ToolContext
from sqlstudio.tools.registry import ToolCatalog

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tools", response_model=list[ToolInfo])
async def list_tools() -> list[ToolInfo]:
    return [
        ToolInfo(
            name=definition.name,
            description=definition.description,
            category=definition.category.value,
            enabled=definition.policy.enabled,
            parameters_schema=definition.parameters_schema,
        )
        for definition in ToolCatalog.list_definitions()
    ]


@router.post("/tools/execute", response_model=ToolExecuteResponse)
async def execute_tool(payload: ToolExecuteRequest) -> ToolExecuteResponse:
    """Run one tool against a connection, outside the agent loop."""
    from sqlstudio.api.main import app_state

    connections = app_state.get("connections")
    if connections is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Connection registry not initialized",
        )
    try:
        connection = connections.get(payload.connection_id)
    except UnknownConnectionError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    ctx = ToolContext(
        connection_id=connection.connection_id,
        default_schema=payload.schema_name or connection.default_schema,
        read_only_sql=get_settings().tools.read_only_sql,
        connections=connections,
    )
    registry = ToolCatalog.bind(ctx)
    if payload.name not in registry:
        definition = ToolCatalog.get_definition(payload.name)
        detail = (
            f"Tool is disabled: {payload.name}" if definition else f"Unknown tool: {payload.name}"
        )
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

    result = await registry.resolve(payload.name, payload.arguments)
    return ToolExecuteResponse(tool=payload.name, success="error" not in result, result=result)
