"""System prompt assembly for agent runs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlstudio.connectors.base import BaseConnector, ConnectorError, TableInfo
from sqlstudio.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "agent/system.md"


def schema_context(
    tables: Sequence[TableInfo],
    requested: Sequence[str] = (),
    max_tables: int = 20,
) -> tuple[list[dict[str, Any]], int]:
    """
    Pick the tables to describe in the prompt.

    Requested tables (matched case-insensitively, schema prefix ignored)
    win; otherwise the first max_tables tables are used. Returns the table
    descriptions and how many tables were left out.
    """
    wanted = {name.rsplit(".", 1)[-1].lower() for name in requested if name.strip()}
    chosen = [t for t in tables if t.table_name.lower() in wanted] if wanted else list(tables)
    described = [
        {
            "name": table.qualified_name,
            "row_count": table.row_count,
            "columns": [
                {
                    "name": column.name,
                    "type": column.data_type,
                    "primary_key": column.is_primary_key,
                    "references": column.foreign_table,
                }
                for column in table.columns
            ],
        }
        for table in chosen[:max_tables]
    ]
    return described, max(0, len(chosen) - max_tables)


async def build_system_prompt(
    *,
    loader: PromptLoader,
    tool_names: Sequence[str],
    database_type: str | None = None,
    schema_name: str | None = None,
    connector: BaseConnector | None = None,
    requested_tables: Sequence[str] = (),
    max_tables: int = 20,
) -> str:
    """Render the agent system prompt; schema lookup failures leave the schema out."""
    tables: list[dict[str, Any]] = []
    omitted = 0
    if connector is not None:
        try:
            infos = await connector.get_schema(schema_name=schema_name)
            tables, omitted = schema_context(infos, requested_tables, max_tables)
        except ConnectorError as exc:
            logger.warning(f"Schema context unavailable, continuing without it: {exc}")

    return loader.render(
        SYSTEM_PROMPT,
        database_type=database_type,
        schema_name=schema_name,
        tools=list(tool_names),
        tables=tables,
        omitted_tables=omitted,
    )
