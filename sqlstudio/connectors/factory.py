"""Connector factory for supported database URLs."""

from __future__ import annotations

from urllib.parse import ParseResult, unquote, urlparse

from sqlstudio.connectors.base import BaseConnector
from sqlstudio.connectors.clickhouse import ClickHouseConnector
from sqlstudio.connectors.mysql import MySQLConnector
from sqlstudio.connectors.postgres import PostgresConnector

_SCHEME_TYPES = {
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "clickhouse": "clickhouse",
    "mysql": "mysql",
}

CONNECTORS: dict[str, tuple[type[BaseConnector], int, str, str]] = {
    # type -> (class, default port, default database, default user)
    "postgresql": (PostgresConnector, 5432, "postgres", "postgres"),
    "clickhouse": (ClickHouseConnector, 8123, "default", "default"),
    "mysql": (MySQLConnector, 3306, "", "root"),
}


def infer_database_type(database_url: str) -> str:
    """Infer logical database type from connection URL scheme."""
    scheme = _parse_url(database_url).scheme.split("+")[0].lower()
    try:
        return _SCHEME_TYPES[scheme]
    except KeyError:
        raise ValueError(f"Unsupported database URL scheme: {scheme or '<none>'}") from None


def resolve_database_type(database_type: str | None, database_url: str) -> str:
    """Resolve target database type from explicit type or URL."""
    if not database_type:
        return infer_database_type(database_url)
    value = _SCHEME_TYPES.get(database_type.strip().lower())
    if value is None:
        raise ValueError(f"Unsupported database type: {database_type}")
    return value


def create_connector(
    *,
    database_url: str,
    database_type: str | None = None,
    database: str | None = None,
    pool_size: int = 10,
    timeout: int = 30,
    **kwargs,
) -> BaseConnector:
    """
    Create an unconnected connector from a URL.

    Args:
        database_url: postgresql://, mysql:// or clickhouse:// URL
        database_type: Explicit type when the scheme is ambiguous
        database: Database name overriding the URL path
        pool_size: Pool size passed to the connector
        timeout: Query timeout in seconds
    """
    parsed = _parse_url(database_url)
    if not parsed.hostname:
        raise ValueError("Invalid database URL: host is required.")

    target_type = resolve_database_type(database_type, database_url)
    connector_cls, default_port, default_db, default_user = CONNECTORS[target_type]
    return connector_cls(
        host=parsed.hostname,
        port=parsed.port or default_port,
        database=database or parsed.path.lstrip("/") or default_db,
        user=unquote(parsed.username) if parsed.username else default_user,
        password=unquote(parsed.password) if parsed.password else "",
        pool_size=pool_size,
        timeout=timeout,
        **kwargs,
    )


def _parse_url(database_url: str) -> ParseResult:
    normalized = database_url.replace("postgresql+asyncpg://", "postgresql://")
    return urlparse(normalized)
