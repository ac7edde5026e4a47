"""Tool dispatcher: capability gating, validation and routing.

Order of checks for ``invoke(name, arguments)``:

1. Gating. A gated name on a server below the minimum tier, or on a server
   whose tier cannot be detected, raises UnsupportedAtTierError.
2. Lookup. A name missing from the catalog raises UnknownToolError.
3. Validation. Arguments that violate the advertised schema raise
   InvalidArgumentsError before any request reaches CouchDB.
4. Routing. Exactly one handler runs. Its operational failures come back as
   a ResponseEnvelope with ``isError`` set.

Protocol faults (steps 1-3) propagate to the transport; they are never
returned as tool results.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..cache.capability_cache import CapabilityCache
from ..database.client import CouchDBClient
from ..exceptions import (
    CapabilityDetectionError,
    ConfigurationError,
    UnknownToolError,
    UnsupportedAtTierError,
)
from .catalog import ALL_TOOLS, GATED_TOOL_NAMES, get_tool, list_available_tools
from .database_tools import DatabaseTools, DocumentTools
from .mango_tools import MangoTools
from .models import ResponseEnvelope, ToolDescriptor
from .tool_validator import validate_arguments

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[ResponseEnvelope]]


class ToolDispatcher:
    """Routes MCP tool calls to the CouchDB tool groups.

    Args:
        client: Shared CouchDB client
        capabilities: Capability cache for the same server
    """

    def __init__(self, client: CouchDBClient, capabilities: CapabilityCache) -> None:
        self.client = client
        self.capabilities = capabilities

        database_tools = DatabaseTools(client)
        document_tools = DocumentTools(client)
        mango_tools = MangoTools(client)

        self._handlers: dict[str, Handler] = {
            "createDatabase": database_tools.create_database,
            "listDatabases": database_tools.list_databases,
            "deleteDatabase": database_tools.delete_database,
            "createDocument": document_tools.create_document,
            "getDocument": document_tools.get_document,
            "createMangoIndex": mango_tools.create_index,
            "deleteMangoIndex": mango_tools.delete_index,
            "listMangoIndexes": mango_tools.list_indexes,
            "findDocuments": mango_tools.find_documents,
            "queryDocuments": mango_tools.query_documents,
        }

        catalog_names = {tool.name for tool in ALL_TOOLS}
        if self.handler_names != catalog_names:
            raise ConfigurationError(
                message="Tool handlers do not match the tool catalog",
                details={
                    "missing_handlers": sorted(catalog_names - self.handler_names),
                    "unknown_handlers": sorted(self.handler_names - catalog_names),
                },
            )

    @property
    def handler_names(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def list_tools(self) -> list[ToolDescriptor]:
        """Tools to advertise for the connected server."""
        return await list_available_tools(self.capabilities)

    async def _check_tier(self, name: str) -> None:
        try:
            supported = await self.capabilities.meets_minimum()
        except CapabilityDetectionError as e:
            raise UnsupportedAtTierError(
                message=f"Tool {name} requires CouchDB 3.x or higher ({e.message})",
                details={"tool": name},
                original_exception=e,
            ) from e

        if not supported:
            tier = self.capabilities.cached_tier
            raise UnsupportedAtTierError(
                message=f"Tool {name} requires CouchDB 3.x or higher",
                details={"tool": name, "version": tier.version if tier else None},
            )

    async def invoke(self, name: str, arguments: Any = None) -> ResponseEnvelope:
        """Execute one tool call.

        Raises:
            UnsupportedAtTierError: Gated tool on an unsupported or undetectable server
            UnknownToolError: No tool with this exact name
            InvalidArgumentsError: Arguments violate the tool's input schema
        """
        if name in GATED_TOOL_NAMES:
            await self._check_tier(name)

        descriptor = get_tool(name)
        if descriptor is None:
            raise UnknownToolError(message=f"Unknown tool: {name}", details={"tool": name})

        args = validate_arguments(descriptor, arguments)

        logger.info(f"Invoking tool {name}")
        envelope = await self._handlers[name](args)
        if envelope.is_error:
            logger.warning(f"Tool {name} failed: {envelope.text}")
        return envelope
