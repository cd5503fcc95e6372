"""
Unit tests for DocumentStoreClient - Cloudant/CouchDB HTTP wrapper.

Tests verify:
- Documents are fetched by id and 404 maps to None
- View lookups send keys, limit and include_docs
- Inserts return id/rev and 409 raises RevisionConflict
- Bulk delete writes _deleted tombstones
- Transport errors raise StoreUnavailable
"""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock

from clients.document_store_client import DocumentStoreClient
from clients.exceptions import RevisionConflict, StoreUnavailable


def _mock_response(status_code=200, json_data=None):
    """Helper to create a mock httpx.Response."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=response,
        )
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def store():
    client = DocumentStoreClient("http://localhost:5984/", "users")
    client.client = AsyncMock(spec=httpx.AsyncClient)
    return client


@pytest.mark.unit
class TestDocumentStoreClient:

    @pytest.mark.asyncio
    async def test_get_document_returns_doc(self, store):
        store.client.get.return_value = _mock_response(200, {"_id": "u1", "_rev": "1-a"})

        doc = await store.get_document("u1")

        assert doc == {"_id": "u1", "_rev": "1-a"}
        store.client.get.assert_called_once_with("http://localhost:5984/users/u1")

    @pytest.mark.asyncio
    async def test_get_document_quotes_id(self, store):
        store.client.get.return_value = _mock_response(200, {"_id": "a/b"})

        await store.get_document("a/b")

        store.client.get.assert_called_once_with("http://localhost:5984/users/a%2Fb")

    @pytest.mark.asyncio
    async def test_get_missing_document_returns_none(self, store):
        store.client.get.return_value = _mock_response(404, {"error": "not_found"})

        assert await store.get_document("nope") is None

    @pytest.mark.asyncio
    async def test_get_document_server_error_raises(self, store):
        store.client.get.return_value = _mock_response(500)

        with pytest.raises(StoreUnavailable):
            await store.get_document("u1")

    @pytest.mark.asyncio
    async def test_query_view_sends_keys_and_limit(self, store):
        rows = [{"id": "d1", "key": "U1", "doc": {"_id": "d1"}}]
        store.client.post.return_value = _mock_response(200, {"rows": rows})

        result = await store.query_view("users", "by_slack_id", keys=["U1"], limit=1)

        assert result == rows
        store.client.post.assert_called_once_with(
            "http://localhost:5984/users/_design/users/_view/by_slack_id",
            params={"include_docs": "true", "limit": 1},
            json={"keys": ["U1"]},
        )

    @pytest.mark.asyncio
    async def test_find_one_returns_first_doc_or_none(self, store):
        store.client.post.return_value = _mock_response(200, {"rows": [{"doc": {"_id": "d1"}}]})
        assert await store.find_one("users", "by_slack_id", "U1") == {"_id": "d1"}

        store.client.post.return_value = _mock_response(200, {"rows": []})
        assert await store.find_one("users", "by_slack_id", "U2") is None

    @pytest.mark.asyncio
    async def test_insert_returns_id_and_rev(self, store):
        store.client.post.return_value = _mock_response(201, {"ok": True, "id": "d1", "rev": "1-a"})

        result = await store.insert({"type": "user-context", "context": {}})

        assert result["id"] == "d1"
        assert result["rev"] == "1-a"
        store.client.post.assert_called_once_with(
            "http://localhost:5984/users", json={"type": "user-context", "context": {}}
        )

    @pytest.mark.asyncio
    async def test_insert_conflict_raises_revision_conflict(self, store):
        store.client.post.return_value = _mock_response(409, {"error": "conflict"})

        with pytest.raises(RevisionConflict):
            await store.insert({"_id": "d1", "_rev": "1-old"})

    @pytest.mark.asyncio
    async def test_connect_error_raises_store_unavailable(self, store):
        store.client.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(StoreUnavailable):
            await store.insert({"_id": "d1"})

    @pytest.mark.asyncio
    async def test_bulk_delete_writes_tombstones(self, store):
        store.client.post.return_value = _mock_response(201, [{"ok": True, "id": "T1"}])

        await store.bulk_delete([{"_id": "T1", "_rev": "2-b", "registration": {}}])

        store.client.post.assert_called_once_with(
            "http://localhost:5984/users/_bulk_docs",
            json={"docs": [{"_id": "T1", "_rev": "2-b", "_deleted": True}]},
        )

    @pytest.mark.asyncio
    async def test_bulk_delete_nothing_skips_request(self, store):
        assert await store.bulk_delete([]) == []
        store.client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_database_existing_returns_false(self, store):
        store.client.put.return_value = _mock_response(412, {"error": "file_exists"})

        assert await store.create_database() is False

    @pytest.mark.asyncio
    async def test_put_design_document_keeps_existing_rev(self, store):
        store.client.get.return_value = _mock_response(200, {"_id": "_design/users", "_rev": "4-d"})
        store.client.put.return_value = _mock_response(201, {"ok": True, "rev": "5-e"})
        views = {"by_slack_id": {"map": "function (doc) {}"}}

        await store.put_design_document("users", views)

        store.client.put.assert_called_once_with(
            "http://localhost:5984/users/_design/users",
            json={
                "_id": "_design/users",
                "language": "javascript",
                "views": views,
                "_rev": "4-d",
            },
        )

    @pytest.mark.asyncio
    async def test_health_check_false_on_failure(self, store):
        store.client.get.side_effect = httpx.ConnectError("Connection refused")

        assert await store.health_check() is False
