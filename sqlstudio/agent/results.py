"""Shaping tool payloads: UI summaries and size-bounded model results."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSummary:
    success: bool
    response: str
    data: Any = None


def summarize_payload(payload: dict[str, Any], preview_rows: int = 10) -> ToolSummary:
    """Short human-readable description of a tool payload for the event stream."""
    if "error" in payload:
        return ToolSummary(success=False, response=str(payload["error"]))

    rows = payload.get("rows")
    if isinstance(rows, list):
        if not rows:
            return ToolSummary(success=True, response="Query returned no results")
        if len(rows) == 1:
            row = rows[0]
            if isinstance(row, dict) and len(row) == 1:
                value = next(iter(row.values()))
                return ToolSummary(success=True, response=f"Result: {value}", data=rows)
            return ToolSummary(success=True, response="1 row returned", data=rows)
        return ToolSummary(
            success=True,
            response=f"{len(rows)} rows returned",
            data=rows[:preview_rows],
        )

    tables = payload.get("tables")
    if isinstance(tables, list):
        return ToolSummary(success=True, response=f"Found {len(tables)} table(s)")

    if payload.get("type") == "bar_graph":
        bars = payload.get("data") or []
        return ToolSummary(
            success=True, response=f"Generated bar graph with {len(bars)} bars", data=bars
        )

    return ToolSummary(success=True, response="Completed successfully")


def payload_size(payload: dict[str, Any]) -> int:
    return len(json.dumps(payload, default=str, ensure_ascii=False).encode("utf-8"))


def truncate_payload(
    payload: dict[str, Any],
    *,
    max_bytes: int = 50_000,
    max_tables: int = 10,
    max_columns: int = 20,
    max_rows: int = 100,
) -> dict[str, Any]:
    """
    Bound the size of a payload sent back to the model.

    Payloads at or under max_bytes pass through untouched. Larger schema
    payloads keep the first max_tables tables and max_columns columns of
    each; larger row payloads keep the first max_rows rows. The result is
    flagged with `_truncated` and `_original_count` only if something was
    actually cut.
    """
    size = payload_size(payload)
    if size <= max_bytes:
        return payload

    tables = payload.get("tables")
    if isinstance(tables, list):
        cut = len(tables) > max_tables
        kept_tables = []
        for table in tables[:max_tables]:
            columns = table.get("columns") if isinstance(table, dict) else None
            if isinstance(columns, list) and len(columns) > max_columns:
                cut = True
                table = {**table, "columns": columns[:max_columns]}
            kept_tables.append(table)
        if not cut:
            return payload
        logger.info(
            f"Truncated schema result from {len(tables)} tables ({size} bytes)",
            extra={"original_size": size, "kept_tables": len(kept_tables)},
        )
        return {
            **payload,
            "tables": kept_tables,
            "_truncated": True,
            "_original_count": len(tables),
        }

    rows = payload.get("rows")
    if isinstance(rows, list):
        if len(rows) <= max_rows:
            return payload
        logger.info(
            f"Truncated row result from {len(rows)} rows ({size} bytes)",
            extra={"original_size": size, "kept_rows": max_rows},
        )
        return {
            **payload,
            "rows": rows[:max_rows],
            "_truncated": True,
            "_original_count": len(rows),
        }

    return payload
