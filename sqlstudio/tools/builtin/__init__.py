"""Built-in tools. Importing this package registers them in the ToolCatalog."""

from sqlstudio.tools.builtin import charts, database

__all__ = ["charts", "database"]
