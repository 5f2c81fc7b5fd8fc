"""
Abstract Observable Document Store

DESIGN DECISION: Both clients coordinate only through a shared document
store. We define an abstract interface for it so that:
1. Google Sheets can back it for real use
2. An in-memory store can back it for tests and single-device use
3. A timeout guard can wrap any backend transparently
4. Business logic stays decoupled from the storage implementation

Documents are plain JSON-compatible dicts addressed by
"collection/doc_id" paths. Subscribers receive the full current state
on subscribe and again after every change.

There is no global write order between two clients: the last physical
write to a document wins.
"""

import copy
from abc import ABC, abstractmethod
from collections import defaultdict
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog


DocumentData = dict[str, Any]
DocumentListener = Callable[[Optional[DocumentData]], None]
CollectionListener = Callable[[list[tuple[str, DocumentData]]], None]
Unsubscribe = Callable[[], None]

_logger = structlog.get_logger("money_mates.store")


def split_path(path: str) -> tuple[str, str]:
    """Split "collection/doc_id" into its two parts."""
    collection, _, doc_id = path.partition("/")
    if not collection or not doc_id or "/" in doc_id:
        raise ValueError(f"Invalid document path: {path!r}")
    return collection, doc_id


def apply_increment(
    current: Any,
    amount: Union[int, float, Decimal],
) -> Union[int, float, str]:
    """
    Add amount to a stored numeric field.

    Amounts are stored as decimal strings (see the ledger models), and
    those are added with Decimal arithmetic so that increments commute
    exactly. Plain numbers stay plain numbers. A missing field counts
    as zero.
    """
    if current is None:
        current = "0" if isinstance(amount, Decimal) else 0
    if isinstance(current, str) or isinstance(amount, Decimal):
        return str(Decimal(str(current)) + Decimal(str(amount)))
    return current + amount


class DocumentStore(ABC):
    """
    Abstract interface for the shared observable document store.

    Any backend (in-memory, Google Sheets, ...) must implement these
    methods. All operations may fail with a StorageError.
    """

    @abstractmethod
    async def get(self, path: str) -> Optional[DocumentData]:
        """
        Read a document once.

        Returns:
            A copy of the document data, or None if it doesn't exist
        """
        pass

    @abstractmethod
    async def list_collection(self, collection: str) -> list[tuple[str, DocumentData]]:
        """
        Read every document in a collection once.

        Returns:
            (doc_id, data) pairs
        """
        pass

    @abstractmethod
    async def set(self, path: str, data: DocumentData) -> None:
        """Create or fully replace a document."""
        pass

    @abstractmethod
    async def create(self, path: str, data: DocumentData) -> None:
        """
        Create a document only if none exists at the path.

        Raises:
            DuplicateError: If the document already exists
        """
        pass

    @abstractmethod
    async def add(self, collection: str, data: DocumentData) -> str:
        """
        Create a document with a store-generated id.

        Returns:
            The new document id
        """
        pass

    @abstractmethod
    async def merge(self, path: str, data: DocumentData) -> None:
        """Shallow-merge fields into a document, creating it if missing."""
        pass

    @abstractmethod
    async def update(self, path: str, data: DocumentData) -> None:
        """
        Shallow-merge fields into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def increment(
        self,
        path: str,
        field: str,
        amount: Union[int, float, Decimal],
    ) -> None:
        """
        Atomically add amount to a numeric field.

        Concurrent increments from both clients must never lose an
        update, whatever order they land in.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        pass

    @abstractmethod
    async def subscribe_document(
        self,
        path: str,
        listener: DocumentListener,
    ) -> Unsubscribe:
        """
        Receive the document now and after every change.

        The listener gets None while the document doesn't exist.
        """
        pass

    @abstractmethod
    async def subscribe_collection(
        self,
        collection: str,
        listener: CollectionListener,
    ) -> Unsubscribe:
        """Receive the whole collection now and after every change."""
        pass

    async def poll(self) -> None:
        """
        Deliver changes made by the other client since the last poll.

        Stores that push every change as it happens need no polling;
        this default does nothing.
        """
        return None


class ListenerRegistry:
    """
    Bookkeeping for document and collection subscribers.

    Listeners get deep copies, so no subscriber can mutate what another
    one sees. A failing listener is logged and skipped; it never breaks
    the write that triggered it.
    """

    def __init__(self):
        self._document_listeners: dict[str, list[DocumentListener]] = defaultdict(list)
        self._collection_listeners: dict[str, list[CollectionListener]] = defaultdict(list)

    def add_document_listener(self, path: str, listener: DocumentListener) -> Unsubscribe:
        self._document_listeners[path].append(listener)

        def unsubscribe() -> None:
            if listener in self._document_listeners[path]:
                self._document_listeners[path].remove(listener)

        return unsubscribe

    def add_collection_listener(
        self,
        collection: str,
        listener: CollectionListener,
    ) -> Unsubscribe:
        self._collection_listeners[collection].append(listener)

        def unsubscribe() -> None:
            if listener in self._collection_listeners[collection]:
                self._collection_listeners[collection].remove(listener)

        return unsubscribe

    def notify_document(self, path: str, data: Optional[DocumentData]) -> None:
        for listener in list(self._document_listeners.get(path, [])):
            try:
                listener(copy.deepcopy(data))
            except Exception as e:
                _logger.error("document_listener_failed", path=path, error=str(e))

    def notify_collection(
        self,
        collection: str,
        documents: list[tuple[str, DocumentData]],
    ) -> None:
        for listener in list(self._collection_listeners.get(collection, [])):
            try:
                listener(copy.deepcopy(documents))
            except Exception as e:
                _logger.error("collection_listener_failed", collection=collection, error=str(e))


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Document not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to create a document that already exists."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StoreTimeoutError(StorageError):
    """A store operation did not finish within the configured timeout."""
    pass
