"""Async database connectors used by the agent's tools."""

from sqlstudio.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    ConnectorError,
    EnumInfo,
    QueryError,
    QueryResult,
    SchemaError,
    TableInfo,
)
from sqlstudio.connectors.factory import create_connector, infer_database_type

__all__ = [
    "BaseConnector",
    "ColumnInfo",
    "ConnectionError",
    "ConnectorError",
    "EnumInfo",
    "QueryError",
    "QueryResult",
    "SchemaError",
    "TableInfo",
    "create_connector",
    "infer_database_type",
]
