"""
Base Database Connector

Async interface the agent's tools use to reach a target database.

Every connector provides:
- connect() / close(): pool or client lifecycle (idempotent)
- execute(): run a statement and return rows as dicts
- get_schema(): tables and columns for one schema/database
- get_enums(): enumerated types and their values
- quote_identifier(): dialect-correct identifier quoting
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Column data type")
    is_nullable: bool = Field(default=True, description="Whether column can be NULL")
    default_value: str | None = Field(None, description="Default value if any")
    is_primary_key: bool = Field(default=False, description="Is part of primary key")
    is_foreign_key: bool = Field(default=False, description="Is a foreign key")
    foreign_table: str | None = Field(None, description="Referenced table if FK")
    foreign_column: str | None = Field(None, description="Referenced column if FK")


class TableInfo(BaseModel):
    """Information about a database table."""

    schema_name: str = Field(..., alias="schema", description="Schema/database name")
    table_name: str = Field(..., description="Table name")
    columns: list[ColumnInfo] = Field(default_factory=list, description="Columns in order")
    row_count: int | None = Field(None, description="Approximate row count")
    table_type: str = Field(default="TABLE", description="TABLE, VIEW, engine name, etc.")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


class EnumInfo(BaseModel):
    """An enumerated type (or enum-typed column) and its allowed values."""

    schema_name: str = Field(..., alias="schema", description="Owning schema/database")
    name: str = Field(..., description="Type name, or table.column for column-level enums")
    values: list[str] = Field(default_factory=list, description="Allowed values in declared order")

    model_config = ConfigDict(populate_by_name=True)


class QueryResult(BaseModel):
    """Result from query execution."""

    rows: list[dict[str, Any]] = Field(..., description="Query result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Query execution time in ms")


class ConnectorError(Exception):
    """Base exception for connector errors."""


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""


class QueryError(ConnectorError):
    """Error executing database query."""


class SchemaError(ConnectorError):
    """Error introspecting database schema."""


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    A connector instance is shared by every request that targets the same
    connection, so implementations keep their state in a pool or client
    that tolerates concurrent use.

    Usage:
        connector = PostgresConnector(host="localhost", port=5432, ...)
        await connector.connect()
        result = await connector.execute("SELECT * FROM users LIMIT 5")
        await connector.close()
    """

    dialect: str = "generic"
    identifier_quote: str = '"'

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._connected = False

        logger.debug(
            f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}"
        )

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection pool or client.

        Raises:
            ConnectionError: If connection fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: Any = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Execute a SQL statement.

        Raises:
            QueryError: If execution fails
            ConnectionError: If not connected
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        """
        Introspect tables and columns of one schema.

        Raises:
            SchemaError: If introspection fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def get_enums(self, schema_name: str | None = None) -> list[EnumInfo]:
        """
        List enumerated types visible in the database.

        Raises:
            SchemaError: If the lookup fails
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def close(self) -> None:
        """Release the pool or client. Safe to call more than once."""
        pass  # pragma: no cover - abstract method

    def quote_identifier(self, name: str) -> str:
        """Quote a single identifier for this dialect."""
        quote = self.identifier_quote
        return f"{quote}{name.replace(quote, quote * 2)}{quote}"

    def qualify(self, table_name: str, schema_name: str | None = None) -> str:
        """Return a quoted, optionally schema-qualified table reference."""
        if schema_name:
            return f"{self.quote_identifier(schema_name)}.{self.quote_identifier(table_name)}"
        return self.quote_identifier(table_name)

    def _require_connection(self) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
