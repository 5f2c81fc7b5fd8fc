"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets backs the shared store because:
1. Both profiles can open the spreadsheet and see their data directly
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

LAYOUT:
- "Documents" sheet: one row per document, JSON-serialized.
- "Increments" sheet: append-only rows of pending field increments.

Sheets has no atomic read-modify-write, but appending a row is atomic.
increment() therefore appends a delta row instead of rewriting the
document; a read folds pending deltas into the stored value, and the
next full write of that document folds them in permanently. Concurrent
increments from both clients commute.

The other client can insert or delete rows at any time, so sheet row
numbers are never cached: a row is looked up by its path (or increment
id) immediately before it is changed.

TRADEOFFS:
- Not suitable for high-volume data (fine for two people)
- Change notification is by polling (the app calls poll() on a timer);
  local writes notify immediately
- create() checks and appends in two steps, so two simultaneous creates
  can both succeed; the session reducer tolerates that
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from money_mates.config import get_settings
from money_mates.services.storage.interface import (
    CollectionListener,
    ConnectionError,
    DocumentData,
    DocumentListener,
    DocumentStore,
    DuplicateError,
    ListenerRegistry,
    NotFoundError,
    StorageError,
    Unsubscribe,
    apply_increment,
    split_path,
)


# Column mappings for Documents sheet
DOCUMENT_COLUMNS = [
    "path",
    "collection",
    "doc_id",
    "data_json",
    "updated_at",
]

# Column mappings for Increments sheet
INCREMENT_COLUMNS = [
    "path",
    "field",
    "amount",
    "created_at",
    "increment_id",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_documents_sheet(self) -> gspread.Worksheet:
        """Get or create the Documents worksheet."""
        return self._get_or_create_sheet(self._settings.documents_sheet_name, DOCUMENT_COLUMNS)

    def get_increments_sheet(self) -> gspread.Worksheet:
        """Get or create the Increments worksheet."""
        return self._get_or_create_sheet(self._settings.increments_sheet_name, INCREMENT_COLUMNS)


class _SheetSnapshot:
    """One consistent read of both sheets."""

    def __init__(self, document_rows: list[list[str]], increment_rows: list[list[str]]):
        self.documents: dict[str, DocumentData] = {}
        # path -> [(increment id, field, amount)]
        self.increments: dict[str, list[tuple[str, str, Decimal]]] = {}

        for row in document_rows[1:]:  # row 1 is header
            if not row or not row[0]:
                continue
            self.documents[row[0]] = json.loads(row[3]) if len(row) > 3 and row[3] else {}

        for row in increment_rows[1:]:
            if not row or not row[0]:
                continue
            increment_id = row[4] if len(row) > 4 else ""
            self.increments.setdefault(row[0], []).append(
                (increment_id, row[1], Decimal(row[2]))
            )

    def effective(self, path: str) -> Optional[DocumentData]:
        """Stored data with pending increments folded in."""
        if path not in self.documents:
            return None
        data = dict(self.documents[path])
        for _, field, amount in self.increments.get(path, []):
            data[field] = apply_increment(data.get(field), amount)
        return data

    def collection(self, collection: str) -> list[tuple[str, DocumentData]]:
        results = []
        for path in self.documents:
            doc_collection, doc_id = split_path(path)
            if doc_collection == collection:
                results.append((doc_id, self.effective(path)))
        return results


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the observable document store.

    gspread is synchronous; every call runs in a worker thread so the
    timeout guard can still abandon it.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._listeners = ListenerRegistry()
        self._write_lock = asyncio.Lock()
        # Last JSON seen per path and per collection, for poll()
        self._seen_documents: dict[str, Optional[str]] = {}
        self._seen_collections: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Sync helpers (run in worker threads)
    # -------------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _snapshot(self) -> _SheetSnapshot:
        """Read both sheets. Reads are safe to retry."""
        try:
            documents = self._client.get_documents_sheet().get_all_values()
            increments = self._client.get_increments_sheet().get_all_values()
            return _SheetSnapshot(documents, increments)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read documents: {e}")

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, value: str, column: int) -> Optional[int]:
        """Current row number of the cell holding value, or None."""
        cell = sheet.find(value, in_column=column)
        return cell.row if cell else None

    def _write_document(self, snapshot: _SheetSnapshot, path: str, data: DocumentData) -> None:
        """
        Write the full document and drop the increments it now contains.

        Only increments present in the snapshot are dropped; one
        appended since then stays pending on top of the new value.
        """
        sheet = self._client.get_documents_sheet()
        data_json = json.dumps(data, sort_keys=True, ensure_ascii=False)
        row_number = self._find_row(sheet, path, DOCUMENT_COLUMNS.index("path") + 1)
        if row_number is not None:
            first = DOCUMENT_COLUMNS.index("data_json") + 1
            last = DOCUMENT_COLUMNS.index("updated_at") + 1
            sheet.update(
                range_name=f"{rowcol_to_a1(row_number, first)}:{rowcol_to_a1(row_number, last)}",
                values=[[data_json, _now_iso()]],
                value_input_option="RAW",
            )
        else:
            collection, doc_id = split_path(path)
            sheet.append_row(
                [path, collection, doc_id, data_json, _now_iso()],
                value_input_option="RAW",
            )
        self._drop_increments(snapshot, path)

    def _drop_increments(self, snapshot: _SheetSnapshot, path: str) -> None:
        pending = snapshot.increments.get(path, [])
        if not pending:
            return
        sheet = self._client.get_increments_sheet()
        id_column = INCREMENT_COLUMNS.index("increment_id") + 1
        for increment_id, _, _ in pending:
            row_number = self._find_row(sheet, increment_id, id_column) if increment_id else None
            if row_number is not None:
                sheet.delete_rows(row_number)

    def _set_sync(self, path: str, data: DocumentData) -> None:
        snapshot = self._snapshot()
        self._write_document(snapshot, path, data)

    def _create_sync(self, path: str, data: DocumentData) -> None:
        snapshot = self._snapshot()
        if path in snapshot.documents:
            raise DuplicateError(f"Document already exists: {path}")
        self._write_document(snapshot, path, data)

    def _merge_sync(self, path: str, data: DocumentData, must_exist: bool) -> None:
        snapshot = self._snapshot()
        current = snapshot.effective(path)
        if current is None:
            if must_exist:
                raise NotFoundError(f"Document not found: {path}")
            current = {}
        current.update(data)
        self._write_document(snapshot, path, current)

    def _increment_sync(self, path: str, field: str, amount: Union[int, float, Decimal]) -> None:
        snapshot = self._snapshot()
        if path not in snapshot.documents:
            raise NotFoundError(f"Document not found: {path}")
        self._client.get_increments_sheet().append_row(
            [path, field, str(amount), _now_iso(), uuid4().hex],
            value_input_option="RAW",
        )

    def _delete_sync(self, path: str) -> None:
        snapshot = self._snapshot()
        self._drop_increments(snapshot, path)
        sheet = self._client.get_documents_sheet()
        row_number = self._find_row(sheet, path, DOCUMENT_COLUMNS.index("path") + 1)
        if row_number is not None:
            sheet.delete_rows(row_number)

    async def _run_write(self, description: str, fn, *args) -> None:
        async with self._write_lock:
            try:
                await asyncio.to_thread(fn, *args)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to {description}: {e}")
        await self.poll()

    # -------------------------------------------------------------------------
    # DocumentStore interface
    # -------------------------------------------------------------------------

    async def get(self, path: str) -> Optional[DocumentData]:
        snapshot = await asyncio.to_thread(self._snapshot)
        return snapshot.effective(path)

    async def list_collection(self, collection: str) -> list[tuple[str, DocumentData]]:
        snapshot = await asyncio.to_thread(self._snapshot)
        return snapshot.collection(collection)

    async def set(self, path: str, data: DocumentData) -> None:
        await self._run_write("set document", self._set_sync, path, data)

    async def create(self, path: str, data: DocumentData) -> None:
        await self._run_write("create document", self._create_sync, path, data)

    async def add(self, collection: str, data: DocumentData) -> str:
        doc_id = uuid4().hex[:20]
        await self._run_write("add document", self._set_sync, f"{collection}/{doc_id}", data)
        return doc_id

    async def merge(self, path: str, data: DocumentData) -> None:
        await self._run_write("merge document", self._merge_sync, path, data, False)

    async def update(self, path: str, data: DocumentData) -> None:
        await self._run_write("update document", self._merge_sync, path, data, True)

    async def increment(
        self,
        path: str,
        field: str,
        amount: Union[int, float, Decimal],
    ) -> None:
        await self._run_write("increment field", self._increment_sync, path, field, amount)

    async def delete(self, path: str) -> None:
        await self._run_write("delete document", self._delete_sync, path)

    async def subscribe_document(
        self,
        path: str,
        listener: DocumentListener,
    ) -> Unsubscribe:
        split_path(path)
        unsubscribe = self._listeners.add_document_listener(path, listener)
        data = await self.get(path)
        self._seen_documents[path] = _fingerprint(data)
        listener(data)
        return unsubscribe

    async def subscribe_collection(
        self,
        collection: str,
        listener: CollectionListener,
    ) -> Unsubscribe:
        unsubscribe = self._listeners.add_collection_listener(collection, listener)
        documents = await self.list_collection(collection)
        self._seen_collections[collection] = _fingerprint(documents)
        listener(documents)
        return unsubscribe

    async def poll(self) -> None:
        """
        Re-read the sheets and notify subscribers of anything that changed.

        Picks up the other client's writes. Call it on a timer.
        """
        snapshot = await asyncio.to_thread(self._snapshot)

        for path, seen in list(self._seen_documents.items()):
            data = snapshot.effective(path)
            fingerprint = _fingerprint(data)
            if fingerprint != seen:
                self._seen_documents[path] = fingerprint
                self._listeners.notify_document(path, data)

        for collection, seen in list(self._seen_collections.items()):
            documents = snapshot.collection(collection)
            fingerprint = _fingerprint(documents)
            if fingerprint != seen:
                self._seen_collections[collection] = fingerprint
                self._listeners.notify_collection(collection, documents)


def _fingerprint(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, default=str)
