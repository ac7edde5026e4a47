"""CouchDB MCP Server using FastMCP.

This module exposes CouchDB to MCP clients over stdio using the FastMCP
framework. The tool catalog depends on the connected server's version:

    - Base tools (any CouchDB): createDatabase, listDatabases, deleteDatabase,
      createDocument, getDocument
    - Gated tools (CouchDB 3.x+): createMangoIndex, deleteMangoIndex,
      listMangoIndexes, findDocuments, queryDocuments

Architecture:
    - Every catalog entry is registered as a CatalogTool whose input schema is
      the descriptor's schema.
    - CouchDBToolMiddleware hides gated tools on older servers and routes every
      tools/call through the ToolDispatcher. Running the dispatcher at the
      middleware layer lets protocol faults (unknown tool, invalid arguments,
      unsupported tier) reach the client as JSON-RPC errors, while CouchDB
      failures come back as tool results with isError set.
    - The lifespan checks connectivity at startup and closes the HTTP pool on
      shutdown.

Usage:
    couchdb-mcp-server            # or: python -m src.couchdb_mcp.server
"""

import logging
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.base import Tool, ToolResult
from mcp.types import TextContent
from pydantic import PrivateAttr

from src.config.settings import Settings, settings

from .cache.capability_cache import CapabilityCache
from .database.client import CouchDBClient
from .exceptions import ConfigurationError, ProtocolError
from .tools.catalog import ALL_TOOLS
from .tools.dispatcher import ToolDispatcher
from .tools.models import ResponseEnvelope, ToolDescriptor

# Configure logging (stdout carries the MCP stdio stream)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "You are connected to a CouchDB server. Use the database and document tools to "
    "create, read and update JSON documents. On CouchDB 3.x and newer, Mango index "
    "tools and the queryDocuments tool are also available; prefer queryDocuments with "
    "returnIdsOnly for large result sets."
)


def to_tool_result(envelope: ResponseEnvelope) -> ToolResult:
    """Convert a dispatcher envelope into FastMCP's tool result."""
    return ToolResult(
        content=[TextContent(type="text", text=item.text) for item in envelope.content],
        is_error=bool(envelope.is_error),
    )


async def dispatch(dispatcher: ToolDispatcher, name: str, arguments: Any) -> ToolResult:
    """Invoke a tool, translating protocol faults into MCPError for the transport."""
    try:
        envelope = await dispatcher.invoke(name, arguments)
    except ProtocolError as e:
        logger.warning(f"Rejected call to {name}: [{e.error_code}] {e.message}")
        raise e.to_mcp_error() from e
    return to_tool_result(envelope)


class CatalogTool(Tool):
    """FastMCP tool backed by a catalog ToolDescriptor."""

    _dispatcher: ToolDispatcher | None = PrivateAttr(default=None)

    @classmethod
    def from_descriptor(
        cls, descriptor: ToolDescriptor, dispatcher: ToolDispatcher
    ) -> "CatalogTool":
        tool = cls(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.input_schema(),
            tags={"gated"} if descriptor.gated else set(),
        )
        tool._dispatcher = dispatcher
        return tool

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        return await dispatch(self._dispatcher, self.name, arguments)


class CouchDBToolMiddleware(Middleware):
    """Capability-aware tools/list filtering and tools/call routing."""

    def __init__(self, dispatcher: ToolDispatcher) -> None:
        self.dispatcher = dispatcher

    async def on_list_tools(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> Sequence[Tool]:
        registered = {tool.name: tool for tool in await call_next(context)}
        advertised = await self.dispatcher.list_tools()
        return [registered[d.name] for d in advertised if d.name in registered]

    async def on_call_tool(
        self,
        context: MiddlewareContext,
        call_next: CallNext,
    ) -> ToolResult:
        return await dispatch(self.dispatcher, context.message.name, context.message.arguments)


def create_server(
    config: Settings = settings, client: CouchDBClient | None = None
) -> FastMCP:
    """Create and configure the FastMCP server with all CouchDB tools.

    Args:
        config: Settings to build the CouchDB client from
        client: Prebuilt client to use instead of one built from config

    Returns:
        Configured FastMCP server instance
    """
    if client is None:
        client = CouchDBClient.from_settings(config)
    capabilities = CapabilityCache(client.info)
    dispatcher = ToolDispatcher(client, capabilities)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        logger.info(f"Connecting to CouchDB at {config.couchdb_display_url}")
        if await client.health_check():
            logger.info("CouchDB is reachable")
        else:
            logger.warning("CouchDB health check failed; tools will report errors until it is up")
        try:
            yield {"dispatcher": dispatcher}
        finally:
            await client.aclose()
            logger.info("CouchDB connection pool closed")

    server = FastMCP(
        name=config.mcp_server_name,
        instructions=SERVER_INSTRUCTIONS,
        lifespan=lifespan,
        middleware=[CouchDBToolMiddleware(dispatcher)],
    )

    for descriptor in ALL_TOOLS:
        server.add_tool(CatalogTool.from_descriptor(descriptor, dispatcher))

    return server


def main():
    """Main entry point for the MCP server."""
    try:
        logger.info("Starting CouchDB MCP Server...")
        try:
            settings.validate_configuration()
        except ValueError as e:
            raise ConfigurationError(message=str(e), original_exception=e) from e

        # Create and run the server
        server = create_server()

        logger.info("CouchDB MCP Server initialized successfully")
        logger.info(f"Catalog: {', '.join(tool.name for tool in ALL_TOOLS)}")

        # Run the server
        server.run()

    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise


if __name__ == "__main__":
    main()
