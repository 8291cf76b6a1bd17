"""
Document Store

Abstract collection store used by the consultation manager, the user directory
and the store catalog, with an in-memory implementation (tests, local runs) and
a Supabase-backed implementation.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


class _ServerTimestamp:
    """Sentinel resolved by the store to the current UTC time at write time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

# A stored document: (id, fields)
Document = Tuple[str, Dict[str, Any]]


def _resolve_timestamps(data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in data.items()}


class DocumentStore(ABC):
    """
    Minimal document store contract.

    Filters are equality matches; a filter value of None matches documents
    whose field is null or missing.
    """

    @abstractmethod
    async def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Documents are copied in and out so callers cannot alias them."""

    def __init__(self, seed: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = copy.deepcopy(seed) if seed else {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        filters = filters or {}
        results = []
        for doc_id, data in self._collection(collection).items():
            if all(data.get(key) == value for key, value in filters.items()):
                results.append((doc_id, copy.deepcopy(data)))
        return results

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self._collection(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        self._collection(collection)[doc_id] = copy.deepcopy(_resolve_timestamps(data, now))
        return doc_id

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        documents = self._collection(collection)
        if doc_id not in documents:
            raise KeyError(f"{collection}/{doc_id} does not exist")
        now = datetime.now(timezone.utc)
        documents[doc_id].update(copy.deepcopy(_resolve_timestamps(data, now)))

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collection(collection).pop(doc_id, None)


class SupabaseDocumentStore(DocumentStore):
    """
    Document store over Supabase tables.

    Each collection maps to a table with a text/uuid `id` primary key.
    """

    def __init__(self, supabase_client):
        """
        Args:
            supabase_client: Supabase client instance
        """
        self.supabase = supabase_client

    @staticmethod
    def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        resolved = _resolve_timestamps(data, now)
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in resolved.items()
        }

    @staticmethod
    def _split(row: Dict[str, Any]) -> Document:
        row = dict(row)
        doc_id = str(row.pop("id"))
        return doc_id, row

    async def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        query = self.supabase.table(collection).select('*')
        for key, value in (filters or {}).items():
            if value is None:
                query = query.is_(key, 'null')
            else:
                query = query.eq(key, value)
        result = query.execute()
        return [self._split(row) for row in (result.data or [])]

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(collection).select('*').eq('id', doc_id).execute()
        if result.data and len(result.data) > 0:
            return self._split(result.data[0])[1]
        return None

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        result = self.supabase.table(collection).insert(self._serialize(data)).execute()
        if not result.data:
            raise RuntimeError(f"Insert into {collection} returned no data")
        return str(result.data[0]["id"])

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        result = self.supabase.table(collection).update(self._serialize(data)).eq('id', doc_id).execute()
        if not result.data:
            raise KeyError(f"{collection}/{doc_id} does not exist")

    async def delete(self, collection: str, doc_id: str) -> None:
        self.supabase.table(collection).delete().eq('id', doc_id).execute()
