"""
In-Memory Document Store

Backs the store interface with plain dicts. Used by the tests and when
both profiles share a single device. All mutations are serialized
through one asyncio lock, which makes increments atomic.
"""

import asyncio
import copy
from decimal import Decimal
from typing import Callable, Optional, Union
from uuid import uuid4

from money_mates.services.storage.interface import (
    CollectionListener,
    DocumentData,
    DocumentListener,
    DocumentStore,
    DuplicateError,
    ListenerRegistry,
    NotFoundError,
    Unsubscribe,
    apply_increment,
    split_path,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed observable document store."""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._collections: dict[str, dict[str, DocumentData]] = {}
        self._lock = asyncio.Lock()
        self._listeners = ListenerRegistry()
        self._id_factory = id_factory or (lambda: uuid4().hex[:20])

    def _read(self, path: str) -> Optional[DocumentData]:
        collection, doc_id = split_path(path)
        data = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def _write(self, path: str, data: DocumentData) -> None:
        collection, doc_id = split_path(path)
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _list(self, collection: str) -> list[tuple[str, DocumentData]]:
        return [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
        ]

    def _publish(self, path: str) -> None:
        collection, _ = split_path(path)
        self._listeners.notify_document(path, self._read(path))
        self._listeners.notify_collection(collection, self._list(collection))

    async def get(self, path: str) -> Optional[DocumentData]:
        return self._read(path)

    async def list_collection(self, collection: str) -> list[tuple[str, DocumentData]]:
        return self._list(collection)

    async def set(self, path: str, data: DocumentData) -> None:
        async with self._lock:
            self._write(path, data)
        self._publish(path)

    async def create(self, path: str, data: DocumentData) -> None:
        async with self._lock:
            if self._read(path) is not None:
                raise DuplicateError(f"Document already exists: {path}")
            self._write(path, data)
        self._publish(path)

    async def add(self, collection: str, data: DocumentData) -> str:
        async with self._lock:
            doc_id = self._id_factory()
            path = f"{collection}/{doc_id}"
            self._write(path, data)
        self._publish(path)
        return doc_id

    async def merge(self, path: str, data: DocumentData) -> None:
        async with self._lock:
            current = self._read(path) or {}
            current.update(copy.deepcopy(data))
            self._write(path, current)
        self._publish(path)

    async def update(self, path: str, data: DocumentData) -> None:
        async with self._lock:
            current = self._read(path)
            if current is None:
                raise NotFoundError(f"Document not found: {path}")
            current.update(copy.deepcopy(data))
            self._write(path, current)
        self._publish(path)

    async def increment(
        self,
        path: str,
        field: str,
        amount: Union[int, float, Decimal],
    ) -> None:
        async with self._lock:
            current = self._read(path)
            if current is None:
                raise NotFoundError(f"Document not found: {path}")
            current[field] = apply_increment(current.get(field), amount)
            self._write(path, current)
        self._publish(path)

    async def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        async with self._lock:
            existed = self._collections.get(collection, {}).pop(doc_id, None) is not None
        if existed:
            self._publish(path)

    async def subscribe_document(
        self,
        path: str,
        listener: DocumentListener,
    ) -> Unsubscribe:
        split_path(path)
        unsubscribe = self._listeners.add_document_listener(path, listener)
        listener(self._read(path))
        return unsubscribe

    async def subscribe_collection(
        self,
        collection: str,
        listener: CollectionListener,
    ) -> Unsubscribe:
        unsubscribe = self._listeners.add_collection_listener(collection, listener)
        listener(self._list(collection))
        return unsubscribe
