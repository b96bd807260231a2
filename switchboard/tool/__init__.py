"""Tool abstraction for the tool-call loop."""

from .function_tool import FunctionTool, tool
from .types import Tool, ToolSchema, ToolSchemaProperty

__all__ = [
    # Core types
    "Tool",
    "ToolSchema",
    "ToolSchemaProperty",
    # Function-based tools
    "FunctionTool",
    "tool",
]
