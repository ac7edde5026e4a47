"""CouchDB MCP Tools Package.

This package contains the tool catalog and the tool groups that talk to CouchDB.

Available Tool Classes:
    - DatabaseTools: Create, list and delete databases
    - DocumentTools: Create, update and read single documents
    - MangoTools: Mango indexes, raw _find and simplified queries (CouchDB 3.x+)

ToolDispatcher ties them together with capability gating and argument
validation.
"""

from .catalog import ALL_TOOLS, BASE_TOOLS, GATED_TOOL_NAMES, GATED_TOOLS, get_tool
from .database_tools import DatabaseTools, DocumentTools
from .dispatcher import ToolDispatcher
from .mango_tools import MangoTools

__all__ = [
    "ALL_TOOLS",
    "BASE_TOOLS",
    "GATED_TOOLS",
    "GATED_TOOL_NAMES",
    "get_tool",
    "DatabaseTools",
    "DocumentTools",
    "MangoTools",
    "ToolDispatcher",
]
