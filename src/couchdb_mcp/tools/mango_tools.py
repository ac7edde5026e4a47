"""Mango index and query tools (CouchDB 3.x+).

These are only reachable through the dispatcher after the capability check, so
none of the methods below re-check the server version.
"""

import logging
from typing import Any

from .base_tool import BaseTool
from .models import FilterClause, ResponseEnvelope, SortClause
from .query_compiler import run_query
from .utils import handle_couchdb_errors

logger = logging.getLogger(__name__)


class MangoTools(BaseTool):
    """Mango index management, raw _find and the simplified query interface."""

    @handle_couchdb_errors
    async def create_index(self, args: dict[str, Any]) -> ResponseEnvelope:
        result = await self.client.create_index(args["dbName"], args["indexName"], args["fields"])
        return self.respond(result)

    @handle_couchdb_errors
    async def delete_index(self, args: dict[str, Any]) -> ResponseEnvelope:
        result = await self.client.delete_index(
            args["dbName"], args["designDoc"], args["indexName"]
        )
        return self.respond(result)

    @handle_couchdb_errors
    async def list_indexes(self, args: dict[str, Any]) -> ResponseEnvelope:
        return self.respond(await self.client.list_indexes(args["dbName"]))

    @handle_couchdb_errors
    async def find_documents(self, args: dict[str, Any]) -> ResponseEnvelope:
        """Pass a caller-built Mango query straight to _find."""
        return self.respond(await self.client.find(args["dbName"], args["query"]))

    @handle_couchdb_errors
    async def query_documents(self, args: dict[str, Any]) -> ResponseEnvelope:
        """Compile filters/sort into a Mango query and run it.

        Args (from the tool call):
            dbName: Target database
            filters: [{"field", "value", "operator"?}, ...]
            limit, skip: Pagination, passed through when present
            fields: Projection, ignored when empty
            sort: [{"field", "order"?}, ...]
            returnIdsOnly: Reduce each document to its _id
        """
        filters = [FilterClause(**clause) for clause in args["filters"]]
        sort = [SortClause(**clause) for clause in args.get("sort") or []]

        result = await run_query(
            self.client,
            args["dbName"],
            filters,
            limit=args.get("limit"),
            skip=args.get("skip"),
            fields=args.get("fields"),
            sort=sort,
            return_ids_only=bool(args.get("returnIdsOnly", False)),
        )
        return self.respond(result)
