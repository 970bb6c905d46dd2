"""Statement policy for model-issued SQL."""

from __future__ import annotations

from collections.abc import Iterable

import sqlparse
from sqlparse.sql import Statement, Token
from sqlparse.tokens import CTE, DDL, DML, Keyword

READ_ONLY_KEYWORDS = {"SELECT", "SHOW", "DESCRIBE", "DESC"}
# Statements whose own syntax may contain DDL words (SHOW CREATE TABLE).
METADATA_KEYWORDS = {"SHOW", "DESCRIBE", "DESC"}


class ToolPolicyError(Exception):
    pass


def _leading_keyword(tokens: Iterable[Token]) -> str | None:
    for token in tokens:
        if token.ttype in (DML, DDL) or (
            token.ttype is Keyword and token.normalized.upper() in METADATA_KEYWORDS
        ):
            return token.normalized.upper()
    return None


def statement_keyword(statement: Statement) -> str | None:
    """
    The keyword that decides what a statement does.

    `WITH ... <main>` and `EXPLAIN [ANALYZE] [(options)] <main>` report the
    keyword of <main>, so `WITH t AS (...) DELETE ...` and
    `EXPLAIN ANALYZE DELETE ...` both report DELETE.
    """
    first = statement.token_first(skip_ws=True, skip_cm=True)
    if first is None:
        return None
    keyword = first.normalized.upper()
    if first.ttype is not CTE and keyword != "EXPLAIN":
        return keyword
    return _leading_keyword(statement.tokens[statement.token_index(first) + 1 :])


def write_keyword(statement: Statement) -> str | None:
    """First DDL or non-SELECT DML keyword anywhere in the statement, including subqueries."""
    for token in statement.flatten():
        if token.ttype is DDL or (token.ttype is DML and token.normalized.upper() != "SELECT"):
            return token.normalized.upper()
    return None


def check_read_only(sql: str) -> None:
    """
    Reject anything but a single read-only statement.

    Raises:
        ToolPolicyError: Statement would write, or could not be classified
    """
    statements = [stmt for stmt in sqlparse.parse(sql) if stmt.token_first(skip_cm=True)]
    if not statements:
        raise ToolPolicyError("Empty SQL statement")
    if len(statements) > 1:
        raise ToolPolicyError("Multiple SQL statements are not allowed in read-only mode")

    statement = statements[0]
    keyword = statement_keyword(statement)
    if keyword in READ_ONLY_KEYWORDS and keyword not in METADATA_KEYWORDS:
        keyword = write_keyword(statement) or keyword
    if keyword not in READ_ONLY_KEYWORDS:
        raise ToolPolicyError(
            f"Only read-only statements are allowed (found {keyword or 'unknown statement'})"
        )
