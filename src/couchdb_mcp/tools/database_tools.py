"""Database and document tools (available on every CouchDB version).

Tools:
    createDatabase, listDatabases, deleteDatabase: server level passthroughs
    createDocument, getDocument: single document reads and writes. The target
        database is created on demand.
"""

import logging
from typing import Any

from .base_tool import BaseTool
from .models import ResponseEnvelope
from .utils import handle_couchdb_errors

logger = logging.getLogger(__name__)


class DatabaseTools(BaseTool):
    """Create, list and delete databases."""

    @handle_couchdb_errors
    async def create_database(self, args: dict[str, Any]) -> ResponseEnvelope:
        name = args["dbName"]
        await self.client.ensure_database(name)
        return ResponseEnvelope.success(f"Database {name} created successfully")

    @handle_couchdb_errors
    async def list_databases(self, args: dict[str, Any]) -> ResponseEnvelope:
        return self.respond(await self.client.list_databases())

    @handle_couchdb_errors
    async def delete_database(self, args: dict[str, Any]) -> ResponseEnvelope:
        name = args["dbName"]
        await self.client.delete_database(name)
        return ResponseEnvelope.success(f"Database {name} deleted successfully")


class DocumentTools(BaseTool):
    """Single document operations."""

    @handle_couchdb_errors
    async def create_document(self, args: dict[str, Any]) -> ResponseEnvelope:
        """Create a document, or update it when ``data`` carries the current ``_rev``."""
        result = await self.client.insert_document(args["dbName"], args["docId"], args["data"])
        return self.respond_compact(result)

    @handle_couchdb_errors
    async def get_document(self, args: dict[str, Any]) -> ResponseEnvelope:
        return self.respond(await self.client.get_document(args["dbName"], args["docId"]))
