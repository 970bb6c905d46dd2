"""
Database connection models.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, SecretStr

DatabaseType = Literal["postgresql", "clickhouse", "mysql"]


class DatabaseConnection(BaseModel):
    """A named target database the agent may be bound to."""

    connection_id: str = Field(..., min_length=1, description="Connection identifier")
    name: str = Field(..., min_length=1, description="User-friendly name")
    database_url: SecretStr = Field(..., description="Connection URL (kept secret)")
    database_type: DatabaseType = Field(..., description="Database engine type")
    default_schema: str | None = Field(
        None, description="Schema used when a request does not name one"
    )
    is_default: bool = Field(default=False, description="Whether this is the default connection")
    description: str | None = Field(None, description="Optional description")


class DatabaseConnectionSummary(BaseModel):
    """Connection details safe to return over the API."""

    connection_id: str
    name: str
    database_type: DatabaseType
    default_schema: str | None = None
    is_default: bool = False
    description: str | None = None

    @classmethod
    def from_connection(cls, connection: DatabaseConnection) -> DatabaseConnectionSummary:
        return cls(**connection.model_dump(exclude={"database_url"}))
