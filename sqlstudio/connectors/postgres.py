"""
PostgreSQL Connector

Async PostgreSQL connector built on an asyncpg pool.

Schema introspection is done with three catalog queries per schema
(columns, primary keys, foreign keys) rather than one round-trip per
table, which keeps get_table_schema fast on wide databases.

Usage:
    connector = PostgresConnector(
        host="localhost", port=5432, database="shop", user="postgres", password="secret"
    )
    await connector.connect()
    result = await connector.execute("SELECT * FROM users WHERE age > $1", params=[18])
    enums = await connector.get_enums()
    await connector.close()
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any

import asyncpg

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

_TABLES_SQL = """
    SELECT c.relname AS table_name,
           CASE c.relkind WHEN 'v' THEN 'VIEW' WHEN 'm' THEN 'MATERIALIZED VIEW' ELSE 'TABLE' END
               AS table_type,
           c.reltuples::bigint AS row_estimate
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = $1 AND c.relkind IN ('r', 'p', 'v', 'm')
    ORDER BY c.relname
"""

_COLUMNS_SQL = """
    SELECT table_name, column_name, data_type, udt_name, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = $1
    ORDER BY table_name, ordinal_position
"""

_PRIMARY_KEYS_SQL = """
    SELECT kcu.table_name, kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = $1
"""

_FOREIGN_KEYS_SQL = """
    SELECT kcu.table_name,
           kcu.column_name,
           ccu.table_name AS foreign_table,
           ccu.column_name AS foreign_column
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage ccu
        ON ccu.constraint_name = tc.constraint_name
    WHERE tc.constraint_type = 'FOREIGN KEY' AND tc.table_schema = $1
"""

_ENUMS_SQL = """
    SELECT n.nspname AS enum_schema,
           t.typname AS enum_name,
           e.enumlabel AS enum_value
    FROM pg_type t
    JOIN pg_enum e ON t.oid = e.enumtypid
    JOIN pg_namespace n ON n.oid = t.typnamespace
    WHERE ($1::text IS NULL OR n.nspname = $1)
    ORDER BY n.nspname, t.typname, e.enumsortorder
"""


class PostgresConnector(BaseConnector):
    """PostgreSQL connector using an asyncpg connection pool."""

    dialect = "postgresql"
    identifier_quote = '"'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pool: asyncpg.Pool | None = None
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Create the pool and verify it with a version probe."""
        async with self._connect_lock:
            if self._connected and self._pool:
                return
            try:
                logger.info(f"Connecting to PostgreSQL at {self.host}:{self.port}/{self.database}")
                self._pool = await asyncpg.create_pool(
                    host=self.host,
                    port=self.port,
                    database=self.database,
                    user=self.user,
                    password=self.password,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.timeout,
                    **self.kwargs,
                )
                async with self._pool.acquire() as conn:
                    version = await conn.fetchval("SELECT version()")
                logger.info(f"Connected to PostgreSQL: {str(version).split(',')[0]}")
                self._connected = True
            except (asyncpg.PostgresError, OSError) as e:
                logger.error(f"PostgreSQL connection failed: {e}")
                raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """Run a statement; placeholders use $1, $2, ..."""
        self._require_connection()
        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            async with self._pool.acquire() as conn:
                records = await conn.fetch(query, *(params or []), timeout=query_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {e}") from e

        rows = [dict(record) for record in records]
        columns = list(records[0].keys()) if records else []
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
        schema = schema_name or "public"

        try:
            async with self._pool.acquire() as conn:
                tables = await conn.fetch(_TABLES_SQL, schema)
                columns = await conn.fetch(_COLUMNS_SQL, schema)
                primary_keys = await conn.fetch(_PRIMARY_KEYS_SQL, schema)
                foreign_keys = await conn.fetch(_FOREIGN_KEYS_SQL, schema)
        except asyncpg.PostgresError as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaError(f"Failed to introspect schema: {e}") from e

        pk_set = {(row["table_name"], row["column_name"]) for row in primary_keys}
        fk_map = {
            (row["table_name"], row["column_name"]): (row["foreign_table"], row["foreign_column"])
            for row in foreign_keys
        }
        columns_by_table: dict[str, list[ColumnInfo]] = defaultdict(list)
        for col in columns:
            key = (col["table_name"], col["column_name"])
            reference = fk_map.get(key)
            data_type = col["data_type"]
            if data_type == "USER-DEFINED":
                data_type = col["udt_name"]
            columns_by_table[col["table_name"]].append(
                ColumnInfo(
                    name=col["column_name"],
                    data_type=data_type,
                    is_nullable=col["is_nullable"] == "YES",
                    default_value=col["column_default"],
                    is_primary_key=key in pk_set,
                    is_foreign_key=reference is not None,
                    foreign_table=reference[0] if reference else None,
                    foreign_column=reference[1] if reference else None,
                )
            )

        table_infos = [
            TableInfo(
                schema=schema,
                table_name=row["table_name"],
                columns=columns_by_table.get(row["table_name"], []),
                row_count=row["row_estimate"] if row["row_estimate"] and row["row_estimate"] > 0 else None,
                table_type=row["table_type"],
            )
            for row in tables
        ]
        logger.info(f"Introspected schema '{schema}': found {len(table_infos)} tables")
        return table_infos

    async def get_enums(self, schema_name: str | None = None) -> list[EnumInfo]:
        self._require_connection()
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(_ENUMS_SQL, schema_name)
        except asyncpg.PostgresError as e:
            logger.error(f"Enum lookup failed: {e}")
            raise SchemaError(f"Failed to list enum types: {e}") from e

        grouped: dict[tuple[str, str], list[str]] = {}
        for row in rows:
            grouped.setdefault((row["enum_schema"], row["enum_name"]), []).append(
                row["enum_value"]
            )
        return [
            EnumInfo(schema=schema, name=name, values=values)
            for (schema, name), values in grouped.items()
        ]

    async def close(self) -> None:
        if not self._pool:
            return
        try:
            await self._pool.close()
            logger.info("PostgreSQL connection closed")
        finally:
            self._pool = None
            self._connected = False
