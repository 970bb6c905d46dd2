"""Chart-data tools."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Literal

from sqlstudio.tools.base import ToolCategory, ToolContext, tool
from sqlstudio.tools.builtin.database import get_connector
from sqlstudio.tools.policy import check_read_only

MAX_BARS = 50


def _to_number(value: Any) -> float | int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float | Decimal):
        number = float(value)
    else:
        try:
            number = float(str(value))
        except ValueError:
            return None
    # NaN and infinities have no JSON encoding.
    return number if math.isfinite(number) else None


@tool(
    name="generate_bar_graph",
    description=(
        "Run an aggregation query and turn two of its columns into bar chart data. "
        "x_column holds the categories and y_column the numeric values."
    ),
    category=ToolCategory.VISUALIZATION,
)
async def generate_bar_graph(
    query: str,
    x_column: str,
    y_column: str,
    title: str | None = None,
    x_label: str | None = None,
    y_label: str | None = None,
    color: str = "steelblue",
    orientation: Literal["vertical", "horizontal"] = "vertical",
    ctx: ToolContext | None = None,
) -> dict[str, Any]:
    if ctx.read_only_sql:
        check_read_only(query)

    connector = await get_connector(ctx)
    result = await connector.execute(query)
    if not result.rows:
        return {"error": "Query returned no rows to chart"}

    columns = result.columns or list(result.rows[0])
    missing = [column for column in (x_column, y_column) if column not in columns]
    if missing:
        return {
            "error": (
                f"Column(s) not found in query result: {', '.join(missing)}. "
                f"Available columns: {', '.join(columns)}"
            )
        }

    data = []
    for row in result.rows[:MAX_BARS]:
        value = _to_number(row.get(y_column))
        if value is None:
            return {
                "error": f"Column {y_column} must be numeric (got {row.get(y_column)!r})"
            }
        label = row.get(x_column)
        data.append({"x": "" if label is None else str(label), "y": value})

    payload: dict[str, Any] = {
        "type": "bar_graph",
        "data": data,
        "title": title or f"{y_column} by {x_column}",
        "x_label": x_label or x_column,
        "y_label": y_label or y_column,
        "color": color,
        "orientation": orientation,
    }
    if len(result.rows) > MAX_BARS:
        payload["warning"] = f"Showing first {MAX_BARS} of {len(result.rows)} bars"
    ctx.log_action("generate_bar_graph", {"bars": len(data)})
    return payload
