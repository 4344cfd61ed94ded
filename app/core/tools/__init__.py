"""
Core tools - Read-only database tools exposed to the language model.
"""

from app.core.tools.sql_agent import SQLAgentToolbox, ToolName, build_toolbox

__all__ = [
    "SQLAgentToolbox",
    "ToolName",
    "build_toolbox",
]
