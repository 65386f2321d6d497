"""Tools for agent integrations."""

from sqlwarden.tools.base import ToolDefinition, function_to_tool_definition
from sqlwarden.tools.registry import ToolRegistry

__all__ = [
    "ToolDefinition",
    "ToolRegistry",
    "function_to_tool_definition",
]
