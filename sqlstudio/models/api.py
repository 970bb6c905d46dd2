"""
API Request/Response Models

Pydantic models for FastAPI endpoints and the CLI.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr


class HistoryMessage(BaseModel):
    """Prior exchange replayed by the client for multi-turn memory."""

    role: Literal["user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message text")


class ProviderCredentials(BaseModel):
    """Per-request provider credentials; unset fields fall back to server settings."""

    aws_access_key_id: SecretStr | None = Field(None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: SecretStr | None = Field(None, alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str | None = Field(None, alias="AWS_REGION")
    anthropic_api_key: SecretStr | None = Field(None, alias="ANTHROPIC_API_KEY")
    openai_api_key: SecretStr | None = Field(None, alias="OPENAI_API_KEY")
    base_url: str | None = Field(None, description="Override for OpenAI-compatible servers")

    model_config = {"populate_by_name": True}


class StreamRequest(BaseModel):
    """Request body for the streaming assistant endpoint."""

    query: str = Field(..., min_length=1, description="User's natural language request")
    connection_id: str | None = Field(
        None, description="Connection the tools are bound to (no tools when omitted)"
    )
    database: str | None = Field(None, description="Database name override for the connection")
    schema_name: str | None = Field(
        None, alias="schema", description="Schema used for context and unqualified tables"
    )
    tables: list[str] = Field(
        default_factory=list, description="Tables to describe in the prompt context"
    )
    model: str | None = Field(None, description="Model id (provider default when omitted)")
    provider: str | None = Field(None, description="Provider id (server default when omitted)")
    credentials: ProviderCredentials | None = Field(None, description="Provider credentials")
    history: list[HistoryMessage] = Field(
        default_factory=list, description="Earlier messages, oldest first"
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "query": "How many orders were placed last week?",
                "connection_id": "analytics",
                "schema": "public",
                "tables": ["orders"],
                "provider": "anthropic",
            }
        },
    }


class ToolExecuteRequest(BaseModel):
    """Run a single tool outside the agent loop."""

    name: str = Field(..., description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    connection_id: str = Field(..., description="Connection the tool runs against")
    schema_name: str | None = Field(None, alias="schema", description="Default schema")

    model_config = {"populate_by_name": True}


class ToolExecuteResponse(BaseModel):
    """Tool execution response payload."""

    tool: str = Field(..., description="Tool name")
    success: bool = Field(..., description="Whether the payload is free of an error")
    result: dict[str, Any] = Field(..., description="Tool result payload")


class ToolInfo(BaseModel):
    """Tool definition summary."""

    name: str
    description: str
    category: str
    enabled: bool
    parameters_schema: dict[str, Any]


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""

    status: str = Field(..., description="Service status: 'healthy' or 'unhealthy'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")


class ReadinessResponse(BaseModel):
    """Response model for readiness check endpoint."""

    status: str = Field(..., description="Readiness status: 'ready' or 'not_ready'")
    version: str = Field(..., description="API version")
    timestamp: str = Field(..., description="Current timestamp (ISO 8601)")
    checks: dict[str, bool] = Field(..., description="Individual readiness checks")
