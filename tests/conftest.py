"""
Shared test fixtures.

No real API calls in tests: the store is in-memory and text completion
is scripted.
"""

import copy
import itertools
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

import pytest
from gspread.cell import Cell
from gspread.utils import a1_to_rowcol

from money_mates.agents.text_completion import TextCompletionClient
from money_mates.formatting import auto_period_label
from money_mates.models.ledger import ProfileId, Transaction
from money_mates.services.storage import InMemoryDocumentStore
from money_mates.services.storage.google_sheets import DOCUMENT_COLUMNS, INCREMENT_COLUMNS


class ScriptedCompletion(TextCompletionClient):
    """Returns queued replies in order; queued exceptions are raised."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, Optional[str]]] = []

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append((prompt, system_prompt))
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeWorksheet:
    """The subset of gspread.Worksheet the Sheets store uses."""

    def __init__(self, header: list[str]):
        self.rows = [list(header)]
        # Runs once, right after the next read: the partner's write
        # landing between our read and our write.
        self.after_next_read: Optional[Callable[[], None]] = None

    def get_all_values(self):
        values = copy.deepcopy(self.rows)
        hook, self.after_next_read = self.after_next_read, None
        if hook:
            hook()
        return values

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(value) for value in values])

    def find(self, query, in_column=None):
        for row_number, row in enumerate(self.rows, start=1):
            for col_number, value in enumerate(row, start=1):
                if in_column not in (None, col_number):
                    continue
                if value == query:
                    return Cell(row_number, col_number, value)
        return None

    def update(self, range_name=None, values=None, value_input_option=None):
        start = range_name.split(":")[0]
        row, col = a1_to_rowcol(start)
        for offset, value in enumerate(values[0]):
            self.rows[row - 1][col - 1 + offset] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]

    def delete_path(self, path: str):
        self.rows = [row for row in self.rows if row[0] != path]


class FakeSheetsClient:
    """One spreadsheet; share an instance between stores to play both clients."""

    def __init__(self):
        self.documents = FakeWorksheet(DOCUMENT_COLUMNS)
        self.increments = FakeWorksheet(INCREMENT_COLUMNS)

    def get_documents_sheet(self):
        return self.documents

    def get_increments_sheet(self):
        return self.increments



def make_transaction(
    user_id: ProfileId,
    amount: str,
    tx_date: date,
    note: Optional[str] = None,
) -> Transaction:
    return Transaction(
        user_id=user_id,
        amount=Decimal(amount),
        tx_date=tx_date,
        period=auto_period_label(tx_date),
        note=note,
    )


def at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def store():
    counter = itertools.count(1)
    return InMemoryDocumentStore(id_factory=lambda: f"doc{next(counter)}")
