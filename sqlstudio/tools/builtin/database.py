"""Built-in database tools."""

from __future__ import annotations

from typing import Any, Literal

from sqlstudio.connectors.base import BaseConnector, TableInfo
from sqlstudio.tools.base import ToolCategory, ToolContext, tool
from sqlstudio.tools.policy import check_read_only
from sqlstudio.tools.select_builder import (
    TableRef,
    WhereFilter,
    build_select,
    mask_sensitive,
    validate_identifier,
)

SELECT_PREVIEW_ROWS = 50
UNFILTERED_TABLE_LIMIT = 20


async def get_connector(ctx: ToolContext, database: str | None = None) -> BaseConnector:
    """Connected connector for the request's connection."""
    if ctx.connections is None:
        raise ValueError("No database connection is bound to this request.")
    return await ctx.connections.get_connector(ctx.connection_id, database or ctx.database)


def split_table_names(table_names: str | list[str] | None) -> list[str]:
    """Normalize a list or comma-separated string; `schema.table` keeps the table part."""
    if not table_names:
        return []
    if isinstance(table_names, str):
        table_names = table_names.split(",")
    names = []
    for raw in table_names:
        name = raw.strip().strip('"`')
        if not name:
            continue
        names.append(name.rsplit(".", 1)[-1].strip('"`'))
    return names


def _serialize_table(table: TableInfo, include_foreign_keys: bool) -> dict[str, Any]:
    columns = []
    for column in table.columns:
        entry: dict[str, Any] = {
            "name": column.name,
            "type": column.data_type,
            "nullable": column.is_nullable,
            "primary_key": column.is_primary_key,
        }
        if include_foreign_keys and column.is_foreign_key and column.foreign_table:
            reference = column.foreign_table
            if column.foreign_column:
                reference = f"{reference}.{column.foreign_column}"
            entry["references"] = reference
        columns.append(entry)
    return {"name": table.table_name, "schema": table.schema_name, "columns": columns}


@tool(
    name="get_table_schema",
    description=(
        "Get columns, types, primary keys and foreign keys for tables. "
        "Pass table_names to limit the result; omit it to describe the first 20 tables "
        "in the schema."
    ),
    category=ToolCategory.SCHEMA,
)
async def get_table_schema(
    table_names: list[str] | str | None = None,
    schema: str | None = None,
    include_foreign_keys: bool = True,
    include_fk_schemas: bool = False,
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    schema_name = validate_identifier(schema, "schema name") if schema else ctx.default_schema
    connector = await get_connector(ctx)
    tables = await connector.get_schema(schema_name=schema_name)
    by_name = {table.table_name.lower(): table for table in tables}

    requested = split_table_names(table_names)
    if requested:
        missing = [name for name in requested if name.lower() not in by_name]
        if len(missing) == len(requested):
            available = ", ".join(sorted(table.table_name for table in tables)) or "none"
            return {
                "error": f"Tables not found: {', '.join(missing)}. Available tables: {available}"
            }
        selected = [by_name[name.lower()] for name in requested if name.lower() in by_name]
    else:
        missing = []
        selected = list(tables[:UNFILTERED_TABLE_LIMIT])

    if include_fk_schemas:
        seen = {table.table_name.lower() for table in selected}
        for table in list(selected):
            for column in table.columns:
                target = (column.foreign_table or "").lower()
                if target and target not in seen and target in by_name:
                    seen.add(target)
                    selected.append(by_name[target])

    ctx.log_action("get_table_schema", {"schema": schema_name, "tables": len(selected)})
    payload: dict[str, Any] = {
        "tables": [_serialize_table(table, include_foreign_keys) for table in selected],
        "count": len(selected),
    }
    if missing:
        payload["missing"] = missing
    if not requested and len(tables) > UNFILTERED_TABLE_LIMIT:
        payload["note"] = (
            f"Showing first {UNFILTERED_TABLE_LIMIT} of {len(tables)} tables; "
            "pass table_names to describe others"
        )
    return payload


@tool(
    name="execute_sql_query",
    description=(
        "Execute a SQL query against the connected database and return the rows. "
        "Use the schema tools first so column and table names are correct."
    ),
    category=ToolCategory.QUERY,
)
async def execute_sql_query(
    query: str,
    database: str | None = None,
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    if ctx.read_only_sql:
        check_read_only(query)
    if database:
        validate_identifier(database, "database name")

    connector = await get_connector(ctx, database)
    result = await connector.execute(query)
    ctx.log_action("execute_sql_query", {"row_count": result.row_count})
    return {
        "rows": result.rows,
        "columns": result.columns,
        "row_count": result.row_count,
        "execution_time_ms": round(result.execution_time_ms, 2),
    }


@tool(
    name="select_data",
    description=(
        "Read rows from one table with structured filters instead of raw SQL. "
        "Sensitive columns such as passwords and tokens are masked."
    ),
    category=ToolCategory.QUERY,
)
async def select_data(
    table_and_schema: TableRef,
    where_concat_operator: Literal["AND", "OR"] = "AND",
    where_filters: list[WhereFilter] | None = None,
    select: list[str] | None = None,
    limit: int = 100,
    offset: int = 0,
    order_by: dict[str, str] | None = None,
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    if offset < 0:
        raise ValueError("offset must be zero or greater")

    connector = await get_connector(ctx)
    sql = build_select(
        table=table_and_schema,
        quote=connector.quote_identifier,
        columns=select,
        filters=where_filters,
        concat_operator=where_concat_operator,
        order_by=order_by,
        limit=limit,
        offset=offset,
        default_schema=ctx.default_schema,
        dialect=connector.dialect,
    )
    if ctx.read_only_sql:
        check_read_only(sql)

    result = await connector.execute(sql)
    rows = mask_sensitive(result.rows)
    ctx.log_action("select_data", {"table": table_and_schema.table_name, "rows": len(rows)})

    payload: dict[str, Any] = {
        "rows": rows[:SELECT_PREVIEW_ROWS],
        "count": len(rows),
        "total_available": len(rows),
    }
    if len(rows) > SELECT_PREVIEW_ROWS:
        payload["note"] = f"Showing first {SELECT_PREVIEW_ROWS} of {len(rows)} rows"
    return payload


@tool(
    name="get_enums",
    description="List enum types (or enum-typed columns) and their allowed values.",
    category=ToolCategory.SCHEMA,
)
async def get_enums(
    schema: str | None = None,
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    schema_name = validate_identifier(schema, "schema name") if schema else ctx.default_schema
    connector = await get_connector(ctx)
    enums = await connector.get_enums(schema_name=schema_name)
    if not enums:
        return {"enums": [], "count": 0, "message": "No enum types found"}
    return {
        "enums": [
            {"schema": enum.schema_name, "name": enum.name, "values": enum.values}
            for enum in enums
        ],
        "count": len(enums),
    }
