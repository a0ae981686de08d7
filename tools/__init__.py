"""
Function Calling Tools Module

This module contains the registry through which the agent invokes tools.
Tools are the "hands" of the agent - the actions it can take to
accomplish user goals. Concrete tools (database queries, navigation,
messaging...) live with the application and are registered at startup.

Each tool is registered with:
- A unique name and a description the model reads
- A JSON schema for its arguments (validated before every call)
- An executor callable that receives the arguments as keyword args
"""

from .registry import (
    RiskLevel,
    ToolSpec,
    ToolCall,
    ToolResult,
    ToolRegistry,
    DuplicateToolError,
)

__all__ = [
    "RiskLevel",
    "ToolSpec",
    "ToolCall",
    "ToolResult",
    "ToolRegistry",
    "DuplicateToolError",
]
