"""
MySQL Connector

mysql-connector-python is synchronous, so every call runs in a worker
thread via asyncio.to_thread against a MySQLConnectionPool.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import defaultdict
from typing import Any

from mysql.connector import Error as MySQLError
from mysql.connector import pooling

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

_ENUM_VALUE_RE = re.compile(r"'((?:[^']|'')*)'")
_MAX_POOL_SIZE = 32


def parse_enum_values(column_type: str) -> list[str]:
    """Extract the labels of an `enum('a','b')` column type."""
    return [value.replace("''", "'") for value in _ENUM_VALUE_RE.findall(column_type)]


class MySQLConnector(BaseConnector):
    """MySQL database connector using mysql-connector-python."""

    dialect = "mysql"
    identifier_quote = "`"

    def __init__(
        self,
        host: str,
        port: int = 3306,
        database: str = "",
        user: str = "root",
        password: str = "",
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs,
    ) -> None:
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
        self._pool: pooling.MySQLConnectionPool | None = None

    async def connect(self) -> None:
        """Create the pool and probe it."""
        if self._connected:
            return
        try:
            self._pool = await asyncio.to_thread(self._create_pool_sync)
            self._connected = True
            logger.info(f"Connected to MySQL at {self.host}:{self.port}/{self.database}")
        except MySQLError as exc:
            logger.error(f"MySQL connection failed: {exc}")
            raise ConnectionError(f"Failed to connect to MySQL: {exc}") from exc

    async def execute(
        self,
        query: str,
        params: list[Any] | dict[str, Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """Execute SQL and return rows; placeholders use %s."""
        self._require_connection()
        start_time = time.perf_counter()
        try:
            rows, columns = await asyncio.to_thread(
                self._fetch_sync, query, params, timeout or self.timeout
            )
        except MySQLError as exc:
            logger.error(f"MySQL query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc

        return QueryResult(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
        )

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        self._require_connection()
        target_schema = schema_name or self.database
        try:
            return await asyncio.to_thread(self._get_schema_sync, target_schema)
        except MySQLError as exc:
            logger.error(f"MySQL schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect schema: {exc}") from exc

    async def get_enums(self, schema_name: str | None = None) -> list[EnumInfo]:
        """MySQL has no named enum types; each ENUM column is reported as table.column."""
        self._require_connection()
        target_schema = schema_name or self.database
        try:
            rows, _ = await asyncio.to_thread(
                self._fetch_sync,
                """
                SELECT table_schema AS table_schema, table_name AS table_name,
                       column_name AS column_name, column_type AS column_type
                FROM information_schema.columns
                WHERE data_type = 'enum' AND table_schema = %s
                ORDER BY table_name, ordinal_position
                """,
                [target_schema],
                self.timeout,
            )
        except MySQLError as exc:
            logger.error(f"MySQL enum lookup failed: {exc}")
            raise SchemaError(f"Failed to list enum columns: {exc}") from exc

        return [
            EnumInfo(
                schema=str(row["table_schema"]),
                name=f"{row['table_name']}.{row['column_name']}",
                values=parse_enum_values(str(row["column_type"])),
            )
            for row in rows
        ]

    async def close(self) -> None:
        # Pooled connections are released on return; dropping the pool closes idle ones.
        self._pool = None
        self._connected = False

    def _create_pool_sync(self) -> pooling.MySQLConnectionPool:
        pool = pooling.MySQLConnectionPool(
            pool_name=f"sqlstudio-{self.host}-{self.port}-{self.database or 'default'}"[:64],
            pool_size=min(self.pool_size, _MAX_POOL_SIZE),
            host=self.host,
            port=self.port,
            database=self.database or None,
            user=self.user,
            password=self.password,
            autocommit=True,
            connection_timeout=self.timeout,
            **self.kwargs,
        )
        conn = pool.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT VERSION()")
            cursor.fetchone()
            cursor.close()
        finally:
            conn.close()
        return pool

    def _fetch_sync(
        self,
        query: str,
        params: list[Any] | dict[str, Any] | None,
        query_timeout: int,
    ) -> tuple[list[dict[str, Any]], list[str]]:
        conn = self._pool.get_connection()
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(f"SET SESSION MAX_EXECUTION_TIME = {int(query_timeout) * 1000}")
            if params is None:
                cursor.execute(query)
            elif isinstance(params, dict):
                cursor.execute(query, params)
            else:
                cursor.execute(query, tuple(params))
            if not cursor.with_rows:
                return [], []
            rows = cursor.fetchall()
            columns = [col[0] for col in cursor.description]
            return rows, columns
        finally:
            cursor.close()
            conn.close()

    def _get_schema_sync(self, schema_name: str) -> list[TableInfo]:
        tables, _ = self._fetch_sync(
            """
            SELECT table_name AS table_name, table_type AS table_type, table_rows AS table_rows
            FROM information_schema.tables
            WHERE table_schema = %s
            ORDER BY table_name
            """,
            [schema_name],
            self.timeout,
        )
        columns, _ = self._fetch_sync(
            """
            SELECT c.table_name AS table_name, c.column_name AS column_name,
                   c.column_type AS column_type, c.is_nullable AS is_nullable,
                   c.column_default AS column_default, c.column_key AS column_key,
                   k.referenced_table_name AS referenced_table_name,
                   k.referenced_column_name AS referenced_column_name
            FROM information_schema.columns c
            LEFT JOIN information_schema.key_column_usage k
                ON k.table_schema = c.table_schema
                AND k.table_name = c.table_name
                AND k.column_name = c.column_name
                AND k.referenced_table_name IS NOT NULL
            WHERE c.table_schema = %s
            ORDER BY c.table_name, c.ordinal_position
            """,
            [schema_name],
            self.timeout,
        )

        columns_by_table: dict[str, list[ColumnInfo]] = defaultdict(list)
        for col in columns:
            foreign_table = col.get("referenced_table_name")
            columns_by_table[str(col["table_name"])].append(
                ColumnInfo(
                    name=str(col["column_name"]),
                    data_type=str(col["column_type"]),
                    is_nullable=str(col["is_nullable"]).upper() == "YES",
                    default_value=(
                        str(col["column_default"]) if col["column_default"] is not None else None
                    ),
                    is_primary_key=str(col["column_key"]).upper() == "PRI",
                    is_foreign_key=foreign_table is not None,
                    foreign_table=str(foreign_table) if foreign_table else None,
                    foreign_column=(
                        str(col["referenced_column_name"]) if foreign_table else None
                    ),
                )
            )

        return [
            TableInfo(
                schema=schema_name,
                table_name=str(row["table_name"]),
                columns=columns_by_table.get(str(row["table_name"]), []),
                row_count=int(row["table_rows"]) if row.get("table_rows") is not None else None,
                table_type=str(row["table_type"]),
            )
            for row in tables
        ]
