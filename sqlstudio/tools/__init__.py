"""Agent tools."""

from sqlstudio.tools.base import (
    ToolCategory,
    ToolContext,
    ToolDefinition,
    ToolDescriptor,
    ToolPolicy,
    tool,
)
from sqlstudio.tools.policy import ToolPolicyError, check_read_only
from sqlstudio.tools.registry import (
    ToolArgumentError,
    ToolCatalog,
    ToolRegistry,
    bind_handler,
)

__all__ = [
    "ToolArgumentError",
    "ToolCatalog",
    "ToolCategory",
    "ToolContext",
    "ToolDefinition",
    "ToolDescriptor",
    "ToolPolicy",
    "ToolPolicyError",
    "ToolRegistry",
    "bind_handler",
    "check_read_only",
    "tool",
]
