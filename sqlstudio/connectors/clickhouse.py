"""
ClickHouse Connector

clickhouse-connect's HTTP client is synchronous; calls are wrapped with
asyncio.to_thread. Parameters use ClickHouse's {name:Type} syntax.

ClickHouse has no primary/foreign key constraints in the relational sense,
so columns are reported with sorting-key membership as `is_primary_key`
and no foreign keys.
"""

import asyncio
import logging
import re
import time
from collections import defaultdict
from typing import Any

import clickhouse_connect
from clickhouse_connect.driver.client import Client
from clickhouse_connect.driver.exceptions import ClickHouseError

from sqlstudio.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    EnumInfo,
    QueryError,
    QueryResult,
    SchemaError,
    TableInfo,
)

logger = logging.getLogger(__name__)

_ENUM_TYPE_RE = re.compile(r"Enum(?:8|16)\((.*)\)")
_ENUM_LABEL_RE = re.compile(r"'((?:[^'\\]|\\.)*)'\s*=\s*-?\d+")


def parse_enum_type(data_type: str) -> list[str] | None:
    """Return labels for an Enum8/Enum16 type (optionally Nullable/LowCardinality-wrapped)."""
    match = _ENUM_TYPE_RE.search(data_type)
    if not match:
        return None
    return [label.replace("\\'", "'") for label in _ENUM_LABEL_RE.findall(match.group(1))]


class ClickHouseConnector(BaseConnector):
    """ClickHouse connector using clickhouse-connect."""

    dialect = "clickhouse"
    identifier_quote = "`"

    def __init__(
        self,
        host: str,
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "",
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ):
        super().__init__(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )
        self._client: Client | None = None

    async def connect(self) -> None:
        if self._connected and self._client:
            return
        try:
            logger.info(f"Connecting to ClickHouse at {self.host}:{self.port}/{self.database}")
            self._client = await asyncio.to_thread(
                clickhouse_connect.get_client,
                host=self.host,
                port=self.port,
                database=self.database,
                username=self.user,
                password=self.password,
                send_receive_timeout=self.timeout,
                **self.kwargs,
            )
            version = await asyncio.to_thread(self._client.command, "SELECT version()")
            logger.info(f"Connected to ClickHouse: version {version}")
            self._connected = True
        except (ClickHouseError, OSError) as e:
            logger.error(f"ClickHouse connection failed: {e}")
            raise ConnectionError(f"Failed to connect to ClickHouse: {e}") from e

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        self._require_connection()
        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            result = await asyncio.to_thread(
                self._client.query,
                query,
                parameters=params or {},
                settings={"max_execution_time": query_timeout},
            )
        except ClickHouseError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {e}") from e

        columns = list(result.column_names)
        rows = [dict(zip(columns, row, strict=False)) for row in result.result_rows]
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Query executed in {execution_time_ms:.2f}ms, returned {len(rows)} rows")
        return QueryResult(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        self._require_connection()
        database = schema_name or self.database

        try:
            tables = await self.execute(
                """
                SELECT name, engine, total_rows
                FROM system.tables
                WHERE database = {db:String}
                ORDER BY name
                """,
                params={"db": database},
            )
            columns = await self.execute(
                """
                SELECT table, name, type, default_kind, default_expression, is_in_sorting_key
                FROM system.columns
                WHERE database = {db:String}
                ORDER BY table, position
                """,
                params={"db": database},
            )
        except QueryError as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaError(f"Failed to introspect schema: {e}") from e

        columns_by_table: dict[str, list[ColumnInfo]] = defaultdict(list)
        for col in columns.rows:
            columns_by_table[col["table"]].append(
                ColumnInfo(
                    name=col["name"],
                    data_type=col["type"],
                    is_nullable=col["type"].startswith("Nullable("),
                    default_value=col.get("default_expression") if col.get("default_kind") else None,
                    is_primary_key=bool(col.get("is_in_sorting_key")),
                )
            )

        table_infos = [
            TableInfo(
                schema=database,
                table_name=row["name"],
                columns=columns_by_table.get(row["name"], []),
                row_count=row.get("total_rows"),
                table_type=row["engine"],
            )
            for row in tables.rows
        ]
        logger.info(f"Introspected database '{database}': found {len(table_infos)} tables")
        return table_infos

    async def get_enums(self, schema_name: str | None = None) -> list[EnumInfo]:
        """Enum8/Enum16 columns, reported as table.column."""
        self._require_connection()
        database = schema_name or self.database
        try:
            result = await self.execute(
                """
                SELECT table, name, type
                FROM system.columns
                WHERE database = {db:String} AND position(type, 'Enum') > 0
                ORDER BY table, position
                """,
                params={"db": database},
            )
        except QueryError as e:
            raise SchemaError(f"Failed to list enum columns: {e}") from e

        enums: list[EnumInfo] = []
        for row in result.rows:
            values = parse_enum_type(row["type"])
            if values is None:
                continue
            enums.append(
                EnumInfo(schema=database, name=f"{row['table']}.{row['name']}", values=values)
            )
        return enums

    async def close(self) -> None:
        if not self._client:
            return
        try:
            await asyncio.to_thread(self._client.close)
            logger.info("ClickHouse connection closed")
        finally:
            self._client = None
            self._connected = False
