"""Observable document store package."""

from money_mates.services.storage.interface import (
    CollectionListener,
    ConnectionError,
    DocumentData,
    DocumentListener,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    StorageError,
    StoreTimeoutError,
    Unsubscribe,
)
from money_mates.services.storage.memory import InMemoryDocumentStore
from money_mates.services.storage.guard import TimeoutGuardedStore
from money_mates.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)
from money_mates.services.storage import paths

__all__ = [
    "CollectionListener",
    "ConnectionError",
    "DocumentData",
    "DocumentListener",
    "DocumentStore",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
    "StoreTimeoutError",
    "TimeoutGuardedStore",
    "Unsubscribe",
    "paths",
]
