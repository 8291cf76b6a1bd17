"""
Unit Tests for the Document Stores

Tests the in-memory store contract and the Supabase query translation.
"""

import pytest
import sys
import os
from datetime import datetime
from unittest.mock import MagicMock

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "student_services", "src"))

from student_services.document_store import (
    SERVER_TIMESTAMP,
    InMemoryDocumentStore,
    SupabaseDocumentStore,
)


class TestInMemoryDocumentStore:
    """Test suite for InMemoryDocumentStore."""

    @pytest.mark.asyncio
    async def test_add_and_get(self):
        store = InMemoryDocumentStore()
        doc_id = await store.add("consultations", {"topic": "SQL joins", "created_at": SERVER_TIMESTAMP})

        data = await store.get("consultations", doc_id)

        assert data["topic"] == "SQL joins"
        assert isinstance(data["created_at"], datetime)

    @pytest.mark.asyncio
    async def test_none_filter_matches_missing_and_null(self):
        store = InMemoryDocumentStore({"consultations": {
            "a": {"mentor_id": None},
            "b": {},
            "c": {"mentor_id": "m1"},
        }})

        unassigned = await store.query("consultations", {"mentor_id": None})

        assert sorted(doc_id for doc_id, _ in unassigned) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_documents_are_copied(self):
        store = InMemoryDocumentStore({"users": {"u1": {"name": "Nora", "tags": ["a"]}}})

        data = await store.get("users", "u1")
        data["tags"].append("b")

        assert (await store.get("users", "u1"))["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_update_missing_raises(self):
        store = InMemoryDocumentStore()
        with pytest.raises(KeyError):
            await store.update("consultations", "missing", {"status": "cancelled"})

    @pytest.mark.asyncio
    async def test_delete(self):
        store = InMemoryDocumentStore({"users": {"u1": {"name": "Nora"}}})
        await store.delete("users", "u1")

        assert await store.get("users", "u1") is None


class TestSupabaseDocumentStore:
    """Test suite for SupabaseDocumentStore against a mocked client."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.mark.asyncio
    async def test_query_uses_is_null_for_none(self, client):
        table = client.table.return_value
        select = table.select.return_value
        select.is_.return_value.execute.return_value.data = [{"id": 7, "mentor_id": None}]

        results = await SupabaseDocumentStore(client).query("consultations", {"mentor_id": None})

        client.table.assert_called_with("consultations")
        select.is_.assert_called_once_with("mentor_id", "null")
        assert results == [("7", {"mentor_id": None})]

    @pytest.mark.asyncio
    async def test_add_serializes_timestamps(self, client):
        insert = client.table.return_value.insert
        insert.return_value.execute.return_value.data = [{"id": "new-id"}]

        doc_id = await SupabaseDocumentStore(client).add("consultations", {"created_at": SERVER_TIMESTAMP})

        sent = insert.call_args[0][0]
        assert doc_id == "new-id"
        assert isinstance(sent["created_at"], str)

    @pytest.mark.asyncio
    async def test_update_without_rows_raises(self, client):
        update = client.table.return_value.update
        update.return_value.eq.return_value.execute.return_value.data = []

        with pytest.raises(KeyError):
            await SupabaseDocumentStore(client).update("consultations", "missing", {"status": "cancelled"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
