"""Target database connection registry."""

from sqlstudio.database.registry import (
    ENV_CONNECTION_ID,
    ConnectionRegistry,
    UnknownConnectionError,
)

__all__ = ["ENV_CONNECTION_ID", "ConnectionRegistry", "UnknownConnectionError"]
