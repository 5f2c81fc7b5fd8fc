"""
Timeout Guard for Document Stores

Wraps any DocumentStore so that no operation can hang forever when the
connection drops. A slow operation fails with StoreTimeoutError, which
callers surface to the user.

DESIGN DECISION: Writes are NOT retried here. A retried add() whose
first attempt actually landed would duplicate a transaction.
"""

import asyncio
from decimal import Decimal
from typing import Awaitable, Optional, TypeVar, Union

from money_mates.audit import EventLogger
from money_mates.services.storage.interface import (
    CollectionListener,
    DocumentData,
    DocumentListener,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    StorageError,
    StoreTimeoutError,
    Unsubscribe,
)

T = TypeVar("T")


class TimeoutGuardedStore(DocumentStore):
    """DocumentStore decorator applying one timeout to every operation."""

    def __init__(
        self,
        inner: DocumentStore,
        timeout_seconds: float = 10.0,
        event_logger: Optional[EventLogger] = None,
    ):
        self._inner = inner
        self._timeout = timeout_seconds
        self._event_logger = event_logger

    @property
    def inner(self) -> DocumentStore:
        return self._inner

    async def _guard(self, operation: str, path: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            error = StoreTimeoutError(
                f"Store {operation} on '{path}' timed out. Please check your connection."
            )
            self._report(operation, path, error)
            raise error
        except (NotFoundError, DuplicateError):
            # Expected outcomes callers branch on; not store failures
            raise
        except StorageError as e:
            self._report(operation, path, e)
            raise

    def _report(self, operation: str, path: str, error: Exception) -> None:
        if self._event_logger:
            self._event_logger.log_store_error(
                operation=operation,
                path=path,
                error_message=str(error),
            )

    async def get(self, path: str) -> Optional[DocumentData]:
        return await self._guard("get", path, self._inner.get(path))

    async def list_collection(self, collection: str) -> list[tuple[str, DocumentData]]:
        return await self._guard("list", collection, self._inner.list_collection(collection))

    async def set(self, path: str, data: DocumentData) -> None:
        await self._guard("set", path, self._inner.set(path, data))

    async def create(self, path: str, data: DocumentData) -> None:
        await self._guard("create", path, self._inner.create(path, data))

    async def add(self, collection: str, data: DocumentData) -> str:
        return await self._guard("add", collection, self._inner.add(collection, data))

    async def merge(self, path: str, data: DocumentData) -> None:
        await self._guard("merge", path, self._inner.merge(path, data))

    async def update(self, path: str, data: DocumentData) -> None:
        await self._guard("update", path, self._inner.update(path, data))

    async def increment(
        self,
        path: str,
        field: str,
        amount: Union[int, float, Decimal],
    ) -> None:
        await self._guard("increment", path, self._inner.increment(path, field, amount))

    async def delete(self, path: str) -> None:
        await self._guard("delete", path, self._inner.delete(path))

    async def subscribe_document(
        self,
        path: str,
        listener: DocumentListener,
    ) -> Unsubscribe:
        return await self._guard(
            "subscribe", path, self._inner.subscribe_document(path, listener)
        )

    async def subscribe_collection(
        self,
        collection: str,
        listener: CollectionListener,
    ) -> Unsubscribe:
        return await self._guard(
            "subscribe", collection, self._inner.subscribe_collection(collection, listener)
        )

    async def poll(self) -> None:
        await self._guard("poll", "*", self._inner.poll())
