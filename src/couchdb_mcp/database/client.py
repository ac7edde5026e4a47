"""Async CouchDB HTTP client.

Thin, stateless delegation to the CouchDB HTTP API over a shared
``httpx.AsyncClient``. Every failure is converted into the server's exception
hierarchy (see ``exceptions.py``) so callers never handle httpx types.

The client is created lazily on the first request, which lets the server build
it at import/startup time and bind it to whichever event loop the MCP transport
runs on.

Example:
    >>> client = CouchDBClient("http://localhost:5984")
    >>> await client.ensure_database("orders")
    >>> await client.find("orders", {"selector": {"status": "open"}})
    >>> await client.aclose()
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from ..exceptions import (
    DocumentConflictError,
    DocumentNotFoundError,
    convert_to_mcp_exception,
    error_from_response,
)

logger = logging.getLogger(__name__)

DESIGN_DOC_PREFIX = "_design/"


def _segment(value: str) -> str:
    """Percent-encode a single URL path segment (database name, document id)."""
    return quote(value, safe="")


@dataclass(frozen=True)
class DatabaseHandle:
    """Reference to a database known to exist on the server."""

    name: str

    @property
    def path(self) -> str:
        return f"/{_segment(self.name)}"


class CouchDBClient:
    """Async client for the subset of the CouchDB API the MCP tools need.

    Attributes:
        base_url: CouchDB server root, e.g. "http://localhost:5984"
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        auth: httpx.Auth | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth = auth
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Any) -> "CouchDBClient":
        """Build a client from the application Settings object."""
        return cls(
            settings.couchdb_url,
            auth=settings.couchdb_auth,
            timeout=settings.couchdb_timeout,
        )

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._http

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            DatabaseError subclass: for any HTTP error status or transport failure
        """
        context = {"method": method, "path": path}
        logger.debug(f"CouchDB request: {method} {path}")

        try:
            response = await self._get_http().request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"CouchDB request {method} {path} failed: {e}")
            raise convert_to_mcp_exception(e, context=context) from e

        if response.is_error:
            raise error_from_response(response, context=context)

        try:
            return response.json()
        except ValueError as e:
            raise convert_to_mcp_exception(
                e, default_message="CouchDB returned a non-JSON response", context=context
            ) from e

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    async def info(self) -> dict[str, Any]:
        """Server welcome document, including ``version``."""
        return await self._request("GET", "/")

    async def health_check(self) -> bool:
        """Check whether CouchDB answers on /_up. Never raises.

        Returns:
            True if the server reports itself up, False otherwise
        """
        try:
            body = await self._request("GET", "/_up")
        except Exception as error:
            logger.warning(f"CouchDB health check failed: {error}")
            return False
        return isinstance(body, dict) and body.get("status") == "ok"

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    async def ensure_database(self, name: str) -> DatabaseHandle:
        """Create the database if it is missing and return a handle to it.

        Idempotent: an existing database, or one created concurrently between
        the existence check and the create (HTTP 412), is not an error.
        """
        handle = DatabaseHandle(name)
        try:
            await self._request("GET", handle.path)
            return handle
        except DocumentNotFoundError:
            logger.info(f"Database '{name}' does not exist, creating it")

        try:
            await self._request("PUT", handle.path)
        except DocumentConflictError:
            logger.debug(f"Database '{name}' was created concurrently")
        return handle

    async def list_databases(self) -> list[str]:
        return await self._request("GET", "/_all_dbs")

    async def delete_database(self, name: str) -> dict[str, Any]:
        return await self._request("DELETE", DatabaseHandle(name).path)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def insert_document(
        self, db_name: str, doc_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Create or update a document. Include ``_rev`` in data to update.

        Returns:
            CouchDB write response: {"ok": true, "id": ..., "rev": ...}
        """
        handle = await self.ensure_database(db_name)
        return await self._request("PUT", f"{handle.path}/{_segment(doc_id)}", json=data)

    async def get_document(self, db_name: str, doc_id: str) -> dict[str, Any]:
        handle = await self.ensure_database(db_name)
        return await self._request("GET", f"{handle.path}/{_segment(doc_id)}")

    # ------------------------------------------------------------------
    # Mango indexes and queries
    # ------------------------------------------------------------------

    async def create_index(
        self, db_name: str, index_name: str, fields: list[str]
    ) -> dict[str, Any]:
        handle = await self.ensure_database(db_name)
        return await self._request(
            "POST",
            f"{handle.path}/_index",
            json={"index": {"fields": fields}, "name": index_name},
        )

    async def delete_index(
        self, db_name: str, design_doc: str, index_name: str
    ) -> dict[str, Any]:
        """Delete a Mango index.

        ``design_doc`` may be given with or without the "_design/" prefix, as
        returned by ``list_indexes`` ("ddoc" field) or as the bare name.
        """
        if design_doc.startswith(DESIGN_DOC_PREFIX):
            design_doc = design_doc[len(DESIGN_DOC_PREFIX):]
        path = (
            f"{DatabaseHandle(db_name).path}/_index/_design/"
            f"{_segment(design_doc)}/json/{_segment(index_name)}"
        )
        return await self._request("DELETE", path)

    async def list_indexes(self, db_name: str) -> dict[str, Any]:
        return await self._request("GET", f"{DatabaseHandle(db_name).path}/_index")

    async def find(self, db_name: str, query: dict[str, Any]) -> dict[str, Any]:
        """Run a Mango query.

        Returns:
            {"docs": [...], "bookmark": ..., "warning": ...} as sent by CouchDB
        """
        handle = await self.ensure_database(db_name)
        return await self._request("POST", f"{handle.path}/_find", json=query)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url='{self.base_url}')"
