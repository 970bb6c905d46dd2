"""
Filtered SELECT construction for the select_data tool.

Identifiers are validated against a strict pattern and quoted by the
connector's dialect; operators come from an allowlist; values are
rendered as escaped literals so one statement shape works on every
supported engine.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000
MASKED_VALUE = "****masked****"
SENSITIVE_MARKERS = (
    "password",
    "token",
    "secret",
    "api_key",
    "apikey",
    "card_number",
    "cardnumber",
    "cvv",
    "ssn",
    "credit_card",
)

NULL_OPERATORS = {"IS NULL", "IS NOT NULL"}
LIST_OPERATORS = {"IN", "NOT IN"}
RANGE_OPERATORS = {"BETWEEN", "NOT BETWEEN"}
COMPARISON_OPERATORS = {
    "=",
    "!=",
    "<>",
    "<",
    "<=",
    ">",
    ">=",
    "LIKE",
    "NOT LIKE",
    "ILIKE",
    "NOT ILIKE",
}
ALLOWED_OPERATORS = COMPARISON_OPERATORS | NULL_OPERATORS | LIST_OPERATORS | RANGE_OPERATORS

# Engines that treat backslash as an escape inside string literals.
BACKSLASH_ESCAPE_DIALECTS = {"mysql", "clickhouse"}


class TableRef(BaseModel):
    """Table to read from."""

    table_name: str = Field(..., description="Table name without schema prefix")
    schema_name: str | None = Field(None, description="Schema (connection default when omitted)")


class WhereFilter(BaseModel):
    """One predicate: column, operator and its operand values."""

    column: str = Field(..., description="Column to filter on")
    operator: str = Field(
        ..., description="One of =, !=, <>, <, <=, >, >=, LIKE, ILIKE, IN, BETWEEN, IS NULL and NOT forms"
    )
    values: list[Any] = Field(
        default_factory=list,
        description="Operand values: none for IS NULL, two for BETWEEN, one or more otherwise",
    )


def validate_identifier(name: str, kind: str = "identifier") -> str:
    value = name.strip()
    if not IDENTIFIER_RE.fullmatch(value):
        raise ValueError(f"Invalid {kind}: {name!r}")
    return value


def render_literal(value: Any, dialect: str | None = None) -> str:
    """
    Render a Python value as a SQL literal.

    Quotes are doubled everywhere; backslashes only for dialects that read
    them as escapes. PostgreSQL keeps them literal (standard_conforming_strings).
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int | float | Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        value = value.isoformat()
    text = str(value)
    if dialect in BACKSLASH_ESCAPE_DIALECTS:
        text = text.replace("\\", "\\\\")
    text = text.replace("'", "''")
    return f"'{text}'"


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(int(limit), MAX_LIMIT))


def build_predicate(
    where: WhereFilter, quote: Callable[[str], str], dialect: str | None = None
) -> str:
    column = quote(validate_identifier(where.column, "column"))
    operator = " ".join(where.operator.upper().split())
    if operator not in ALLOWED_OPERATORS:
        raise ValueError(f"Unsupported operator: {where.operator}")

    if operator in NULL_OPERATORS:
        return f"{column} {operator}"
    if operator in LIST_OPERATORS:
        if not where.values:
            raise ValueError(f"{operator} on {where.column} needs at least one value")
        rendered = ", ".join(render_literal(value, dialect) for value in where.values)
        return f"{column} {operator} ({rendered})"
    if operator in RANGE_OPERATORS:
        if len(where.values) != 2:
            raise ValueError(f"{operator} on {where.column} needs exactly two values")
        low, high = (render_literal(value, dialect) for value in where.values)
        return f"{column} {operator} {low} AND {high}"
    if not where.values:
        raise ValueError(f"{operator} on {where.column} needs a value")
    return f"{column} {operator} {render_literal(where.values[0], dialect)}"


def build_select(
    *,
    table: TableRef,
    quote: Callable[[str], str],
    columns: list[str] | None = None,
    filters: list[WhereFilter] | None = None,
    concat_operator: Literal["AND", "OR"] = "AND",
    order_by: dict[str, str] | None = None,
    limit: int | None = None,
    offset: int | None = None,
    default_schema: str | None = None,
    dialect: str | None = None,
) -> str:
    """Build a single SELECT statement from structured arguments."""
    table_name = quote(validate_identifier(table.table_name, "table name"))
    schema_name = table.schema_name or default_schema
    source = (
        f"{quote(validate_identifier(schema_name, 'schema name'))}.{table_name}"
        if schema_name
        else table_name
    )

    projection = (
        ", ".join(quote(validate_identifier(col, "column")) for col in columns) if columns else "*"
    )
    sql = f"SELECT {projection} FROM {source}"

    if filters:
        joiner = f" {concat_operator} "
        sql += " WHERE " + joiner.join(build_predicate(f, quote, dialect) for f in filters)

    if order_by:
        clauses = []
        for column, direction in order_by.items():
            direction = direction.strip().upper()
            if direction not in ("ASC", "DESC"):
                raise ValueError(f"Invalid sort direction for {column}: {direction}")
            clauses.append(f"{quote(validate_identifier(column, 'column'))} {direction}")
        sql += " ORDER BY " + ", ".join(clauses)

    sql += f" LIMIT {clamp_limit(limit)}"
    if offset:
        sql += f" OFFSET {max(0, int(offset))}"
    return sql


def is_sensitive(column: str) -> bool:
    lowered = column.lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def mask_sensitive(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Replace values of credential-like columns."""
    return [
        {
            key: (MASKED_VALUE if is_sensitive(key) and value is not None else value)
            for key, value in row.items()
        }
        for row in rows
    ]
