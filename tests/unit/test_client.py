"""Unit tests for the CouchDB HTTP client.

The client runs against ``httpx.MockTransport`` so the exact requests sent to
CouchDB and the mapping of responses onto the exception hierarchy can be
asserted without a server.
"""

import json

import httpx
import pytest

from src.couchdb_mcp.database.client import CouchDBClient, DatabaseHandle
from src.couchdb_mcp.exceptions import (
    CouchMCPError,
    DatabaseAuthorizationError,
    DatabaseConnectionError,
    DatabaseTimeoutError,
    DocumentConflictError,
    DocumentNotFoundError,
    QueryExecutionError,
)


class RecordingCouch:
    """Tiny routing table standing in for CouchDB; records every request."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.raw_path.decode())
        if key in self.routes:
            template = self.routes[key]
            return httpx.Response(
                template.status_code, content=template.content, headers=template.headers
            )
        return httpx.Response(404, json={"error": "not_found", "reason": "missing"})

    @property
    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.raw_path.decode()) for r in self.requests]


EXISTING_DB = httpx.Response(200, json={"db_name": "orders"})


@pytest.mark.unit
class TestServerEndpoints:
    async def test_info(self, transport_client):
        couch = RecordingCouch({("GET", "/"): httpx.Response(200, json={"version": "3.3.3"})})
        client = transport_client(couch)

        assert await client.info() == {"version": "3.3.3"}

    async def test_health_check_up(self, transport_client):
        couch = RecordingCouch({("GET", "/_up"): httpx.Response(200, json={"status": "ok"})})

        assert await transport_client(couch).health_check() is True

    async def test_health_check_never_raises(self, transport_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await transport_client(refuse).health_check() is False

    async def test_aclose_is_idempotent(self, transport_client):
        couch = RecordingCouch({("GET", "/_all_dbs"): httpx.Response(200, json=[])})
        client = transport_client(couch)
        await client.list_databases()
        await client.aclose()
        await client.aclose()


@pytest.mark.unit
class TestDatabases:
    async def test_ensure_existing_database(self, transport_client):
        couch = RecordingCouch({("GET", "/orders"): EXISTING_DB})

        handle = await transport_client(couch).ensure_database("orders")

        assert handle == DatabaseHandle("orders")
        assert couch.calls == [("GET", "/orders")]

    async def test_ensure_creates_missing_database(self, transport_client):
        couch = RecordingCouch({("PUT", "/orders"): httpx.Response(201, json={"ok": True})})

        await transport_client(couch).ensure_database("orders")

        assert couch.calls == [("GET", "/orders"), ("PUT", "/orders")]

    async def test_ensure_tolerates_concurrent_create(self, transport_client):
        couch = RecordingCouch(
            {
                ("PUT", "/orders"): httpx.Response(
                    412, json={"error": "file_exists", "reason": "The database could not be created"}
                )
            }
        )

        handle = await transport_client(couch).ensure_database("orders")

        assert handle.name == "orders"

    async def test_database_names_are_percent_encoded(self, transport_client):
        couch = RecordingCouch({("GET", "/team%2Forders"): EXISTING_DB})

        handle = await transport_client(couch).ensure_database("team/orders")

        assert handle.path == "/team%2Forders"
        assert couch.calls == [("GET", "/team%2Forders")]

    async def test_list_databases(self, transport_client):
        couch = RecordingCouch({("GET", "/_all_dbs"): httpx.Response(200, json=["_users", "orders"])})

        assert await transport_client(couch).list_databases() == ["_users", "orders"]

    async def test_delete_missing_database(self, transport_client):
        client = transport_client(RecordingCouch({}))

        with pytest.raises(DocumentNotFoundError) as exc_info:
            await client.delete_database("ghost")

        assert exc_info.value.message == "not_found: missing"
        assert exc_info.value.details["method"] == "DELETE"


@pytest.mark.unit
class TestDocuments:
    async def test_insert_document(self, transport_client):
        couch = RecordingCouch(
            {
                ("GET", "/orders"): EXISTING_DB,
                ("PUT", "/orders/order-1"): httpx.Response(
                    201, json={"ok": True, "id": "order-1", "rev": "1-abc"}
                ),
            }
        )

        result = await transport_client(couch).insert_document(
            "orders", "order-1", {"status": "open"}
        )

        assert result == {"ok": True, "id": "order-1", "rev": "1-abc"}
        assert json.loads(couch.requests[-1].content) == {"status": "open"}

    async def test_update_conflict(self, transport_client):
        couch = RecordingCouch(
            {
                ("GET", "/orders"): EXISTING_DB,
                ("PUT", "/orders/order-1"): httpx.Response(
                    409, json={"error": "conflict", "reason": "Document update conflict."}
                ),
            }
        )

        with pytest.raises(DocumentConflictError, match="conflict"):
            await transport_client(couch).insert_document("orders", "order-1", {"x": 1})

    async def test_get_missing_document(self, transport_client):
        couch = RecordingCouch({("GET", "/orders"): EXISTING_DB})

        with pytest.raises(DocumentNotFoundError):
            await transport_client(couch).get_document("orders", "nope")

    async def test_design_document_id_is_encoded(self, transport_client):
        couch = RecordingCouch(
            {
                ("GET", "/orders"): EXISTING_DB,
                ("GET", "/orders/_design%2Fviews"): httpx.Response(200, json={"_id": "_design/views"}),
            }
        )

        doc = await transport_client(couch).get_document("orders", "_design/views")

        assert doc["_id"] == "_design/views"


@pytest.mark.unit
class TestMango:
    async def test_create_index(self, transport_client):
        couch = RecordingCouch(
            {
                ("GET", "/orders"): EXISTING_DB,
                ("POST", "/orders/_index"): httpx.Response(
                    200, json={"result": "created", "id": "_design/abc", "name": "by-status"}
                ),
            }
        )

        result = await transport_client(couch).create_index("orders", "by-status", ["status"])

        assert result["result"] == "created"
        assert json.loads(couch.requests[-1].content) == {
            "index": {"fields": ["status"]},
            "name": "by-status",
        }

    @pytest.mark.parametrize("design_doc", ["abc", "_design/abc"])
    async def test_delete_index_accepts_prefixed_design_doc(self, transport_client, design_doc):
        couch = RecordingCouch(
            {("DELETE", "/orders/_index/_design/abc/json/by-status"): httpx.Response(
                200, json={"ok": True}
            )}
        )

        result = await transport_client(couch).delete_index("orders", design_doc, "by-status")

        assert result == {"ok": True}
        assert couch.calls == [("DELETE", "/orders/_index/_design/abc/json/by-status")]

    async def test_list_indexes_does_not_create_database(self, transport_client):
        couch = RecordingCouch(
            {("GET", "/orders/_index"): httpx.Response(200, json={"total_rows": 1, "indexes": []})}
        )

        await transport_client(couch).list_indexes("orders")

        assert couch.calls == [("GET", "/orders/_index")]

    async def test_find(self, transport_client):
        body = {"docs": [{"_id": "a"}], "bookmark": "g1AAAA"}
        couch = RecordingCouch(
            {("GET", "/orders"): EXISTING_DB, ("POST", "/orders/_find"): httpx.Response(200, json=body)}
        )

        result = await transport_client(couch).find("orders", {"selector": {"status": "open"}})

        assert result == body
        assert json.loads(couch.requests[-1].content) == {"selector": {"status": "open"}}

    async def test_find_rejected_query(self, transport_client):
        couch = RecordingCouch(
            {
                ("GET", "/orders"): EXISTING_DB,
                ("POST", "/orders/_find"): httpx.Response(
                    400, json={"error": "invalid_operator", "reason": "Invalid operator: $foo"}
                ),
            }
        )

        with pytest.raises(QueryExecutionError) as exc_info:
            await transport_client(couch).find("orders", {"selector": {"a": {"$foo": 1}}})

        assert exc_info.value.message == "invalid_operator: Invalid operator: $foo"
        assert exc_info.value.details["status_code"] == 400


@pytest.mark.unit
class TestFailureMapping:
    async def test_unauthorized(self, transport_client):
        couch = RecordingCouch(
            {("GET", "/_all_dbs"): httpx.Response(
                401, json={"error": "unauthorized", "reason": "Name or password is incorrect."}
            )}
        )

        with pytest.raises(DatabaseAuthorizationError):
            await transport_client(couch).list_databases()

    async def test_connection_refused(self, transport_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await transport_client(refuse).list_databases()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_timeout(self, transport_client):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(DatabaseTimeoutError):
            await transport_client(slow).info()

    async def test_non_json_body(self, transport_client):
        couch = RecordingCouch({("GET", "/"): httpx.Response(200, text="<html>proxy</html>")})

        with pytest.raises(CouchMCPError, match="non-JSON"):
            await transport_client(couch).info()


@pytest.mark.unit
def test_from_settings():
    class Config:
        couchdb_url = "http://db:5984/"
        couchdb_auth = httpx.BasicAuth("admin", "secret")
        couchdb_timeout = 5.0

    client = CouchDBClient.from_settings(Config())

    assert client.base_url == "http://db:5984"
    assert client.timeout == 5.0
    assert repr(client) == "CouchDBClient(base_url='http://db:5984')"
