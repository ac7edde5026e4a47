"""Tool catalog: declarative descriptors for every CouchDB MCP tool.

The descriptors below are the single source of truth for both what is advertised
to clients (``inputSchema``) and what the dispatcher enforces (see
``tool_validator.py``).

Tools are split in two partitions:
    - BASE_TOOLS: database and document passthroughs, always advertised
    - GATED_TOOLS: Mango index and query tools, advertised and callable only
      when the connected CouchDB is 3.x or newer

GATED_TOOL_NAMES is derived from GATED_TOOLS so the gating lookup can never
drift from the advertised partition.
"""

import logging

from ..cache.capability_cache import CapabilityCache
from .models import NON_BLANK_PATTERN, ArgumentSpec, ToolDescriptor

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ("==", "!=", ">", "<", ">=", "<=", "in", "nin", "exists", "type", "regex")
SORT_ORDERS = ("asc", "desc")


def _db_name(description: str = "Database name") -> ArgumentSpec:
    return ArgumentSpec(
        name="dbName", type="string", required=True, non_empty=True, description=description
    )


def _string(name: str, description: str) -> ArgumentSpec:
    return ArgumentSpec(
        name=name, type="string", required=True, non_empty=True, description=description
    )


FILTER_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "field": {
            "type": "string",
            "minLength": 1,
            "pattern": NON_BLANK_PATTERN,
            "description": "Field name to filter by",
        },
        "value": {"description": "Value to compare against"},
        "operator": {
            "type": ["string", "null"],
            "default": "==",
            "description": (
                f"One of {', '.join(FILTER_OPERATORS)}. "
                "'in'/'nin' accept a single value or a list. "
                "Unrecognized operators are treated as '=='"
            ),
        },
    },
    "required": ["field", "value"],
}

SORT_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "field": {
            "type": "string",
            "minLength": 1,
            "pattern": NON_BLANK_PATTERN,
            "description": "Field name to sort by",
        },
        "order": {
            "type": ["string", "null"],
            "default": "asc",
            "description": "'asc' or 'desc'; anything else sorts ascending",
        },
    },
    "required": ["field"],
}

STRING_ITEMS = {"type": "string"}


# =============================================================================
# BASE TOOLS
# =============================================================================

BASE_TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="createDatabase",
        description="Create a new CouchDB database",
        arguments=(_db_name(),),
    ),
    ToolDescriptor(
        name="listDatabases",
        description="List all CouchDB databases",
    ),
    ToolDescriptor(
        name="deleteDatabase",
        description="Delete a CouchDB database",
        arguments=(_db_name("Database name to delete"),),
    ),
    ToolDescriptor(
        name="createDocument",
        description="Create a new document or update an existing document in a database",
        arguments=(
            _db_name(),
            _string("docId", "Document ID"),
            ArgumentSpec(
                name="data",
                type="object",
                required=True,
                description="Document data. Include _rev to update an existing document",
            ),
        ),
    ),
    ToolDescriptor(
        name="getDocument",
        description="Get a document from a database",
        arguments=(_db_name(), _string("docId", "Document ID")),
    ),
)


# =============================================================================
# GATED TOOLS (CouchDB 3.x+)
# =============================================================================

GATED_TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="createMangoIndex",
        description="Create a new Mango index (CouchDB 3.x+)",
        gated=True,
        arguments=(
            _db_name(),
            _string("indexName", "Name of the index"),
            ArgumentSpec(
                name="fields",
                type="array",
                required=True,
                items=STRING_ITEMS,
                description="Fields to index",
            ),
        ),
    ),
    ToolDescriptor(
        name="deleteMangoIndex",
        description="Delete a Mango index (CouchDB 3.x+)",
        gated=True,
        arguments=(
            _db_name(),
            _string("designDoc", "Design document name"),
            _string("indexName", "Name of the index"),
        ),
    ),
    ToolDescriptor(
        name="listMangoIndexes",
        description="List all Mango indexes in a database (CouchDB 3.x+)",
        gated=True,
        arguments=(_db_name(),),
    ),
    ToolDescriptor(
        name="findDocuments",
        description="Query documents using Mango query (CouchDB 3.x+)",
        gated=True,
        arguments=(
            _db_name(),
            ArgumentSpec(
                name="query", type="object", required=True, description="Mango query object"
            ),
        ),
    ),
    ToolDescriptor(
        name="queryDocuments",
        description="Query documents using simplified parameters (CouchDB 3.x+)",
        gated=True,
        arguments=(
            _db_name(),
            ArgumentSpec(
                name="filters",
                type="array",
                required=True,
                items=FILTER_ITEM_SCHEMA,
                description="Array of filter objects with field, value, and optional operator",
            ),
            ArgumentSpec(
                name="limit", type="number", description="Maximum number of documents to return"
            ),
            ArgumentSpec(name="skip", type="number", description="Number of documents to skip"),
            ArgumentSpec(
                name="fields",
                type="array",
                items=STRING_ITEMS,
                description="Field names to return",
            ),
            ArgumentSpec(
                name="sort",
                type="array",
                items=SORT_ITEM_SCHEMA,
                description="Sort keys in order of precedence",
            ),
            ArgumentSpec(
                name="returnIdsOnly",
                type="boolean",
                default=False,
                description=(
                    "Return only document IDs instead of full documents; "
                    "_id is always projected"
                ),
            ),
        ),
    ),
)

GATED_TOOL_NAMES: frozenset[str] = frozenset(tool.name for tool in GATED_TOOLS)

ALL_TOOLS: tuple[ToolDescriptor, ...] = BASE_TOOLS + GATED_TOOLS

_TOOLS_BY_NAME: dict[str, ToolDescriptor] = {tool.name: tool for tool in ALL_TOOLS}


def get_tool(name: str) -> ToolDescriptor | None:
    """Exact-name lookup across both partitions."""
    return _TOOLS_BY_NAME.get(name)


async def list_available_tools(capabilities: CapabilityCache) -> list[ToolDescriptor]:
    """Tools to advertise for the connected server.

    Always the base set; the gated set is appended when the server meets the
    minimum version. Detection failure is not fatal and advertises base tools only.
    """
    if await capabilities.meets_minimum_or_false():
        return list(ALL_TOOLS)
    return list(BASE_TOOLS)
