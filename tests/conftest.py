"""
Shared fixtures: an in-memory Supabase double and fake pipeline collaborators.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import copy
from typing import Any, Dict, List, Optional

import pytest
from postgrest.exceptions import APIError

from shiftscan.services.errors import AcquisitionError

# Columns with a UNIQUE constraint, per table
UNIQUE_COLUMNS = {'shift_reports': ('receipt_hash',)}


SHIFT_REPORT_TEXT = """SHIFT REPORT
REGISTER #: 02
CASHIER: 1047
DATE: 10/14/2026
SHIFT START: 10:00 PM
SHIFT END: 06:00 AM
GROSS SALES: $1,245.67
NET SALES: $1,150.20
SALES TAX: $72.23
TRANSACTIONS: 142
BEGINNING BALANCE: $200.00
ENDING BALANCE: $1,612.40
CASH SHORT: ($12.50)
FUEL SALES: $3,410.55
GALLONS: 1,021.44
CREDIT 88 $3,120.77
DEBIT 21 $655.05"""


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Subset of the postgrest query builder used by ShiftReportStorage."""

    def __init__(self, db: 'FakeSupabase', table: str):
        self.db = db
        self.table_name = table
        self.operation = 'select'
        self.columns = '*'
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_range = None
        self.row_limit = None

    def select(self, columns: str = '*'):
        self.operation = 'select'
        self.columns = columns
        return self

    def insert(self, data):
        self.operation = 'insert'
        self.payload = data
        return self

    def update(self, data):
        self.operation = 'update'
        self.payload = data
        return self

    def delete(self):
        self.operation = 'delete'
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] <= value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def range(self, start, end):
        self.row_range = (start, end)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def execute(self):
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.operation == 'insert':
            return FakeResponse(self.db.insert_rows(self.table_name, self.payload))

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.operation == 'update':
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))

        if self.operation == 'delete':
            self.db.tables[self.table_name] = [row for row in rows if row not in matched]
            return FakeResponse(copy.deepcopy(matched))

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column) or '', reverse=desc)
        if self.row_range:
            start, end = self.row_range
            matched = matched[start:end + 1]
        if self.row_limit is not None:
            matched = matched[:self.row_limit]

        return FakeResponse([self._project(row) for row in matched])

    def _project(self, row):
        if self.columns.strip() == '*':
            return copy.deepcopy(row)
        names = [name.strip() for name in self.columns.split(',')]
        return {name: copy.deepcopy(row.get(name)) for name in names}


class FakeSupabase:
    """In-memory stand-in for the Supabase client (tables only)."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        # Rows that "another request" inserts right before our next insert
        self.pending_rows: Dict[str, List[Dict[str, Any]]] = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def insert_rows(self, table: str, payload):
        rows = self.tables.setdefault(table, [])
        rows.extend(self.pending_rows.pop(table, []))

        new_rows = payload if isinstance(payload, list) else [payload]
        for new_row in new_rows:
            for column in UNIQUE_COLUMNS.get(table, ()):
                if any(row.get(column) == new_row.get(column) for row in rows):
                    raise APIError({
                        'message': f'duplicate key value violates unique constraint "{table}_{column}_key"',
                        'code': '23505',
                        'hint': None,
                        'details': None,
                    })
            rows.append(copy.deepcopy(new_row))
        return copy.deepcopy(new_rows)


class FakeOCR:
    """OCR double: fixed text, or an AcquisitionError."""

    def __init__(self, text: str = "", error: Optional[Exception] = None, rendered: bytes = b"\x89PNG-page-1"):
        self.text = text
        self.error = error
        self.rendered = rendered
        self.render_calls = 0

    def extract_text(self, file_data: bytes, mime_type: str) -> str:
        if mime_type == 'application/pdf':
            return ""
        if self.error is not None:
            raise self.error
        return self.text

    def render_pdf_first_page(self, pdf_data: bytes) -> bytes:
        self.render_calls += 1
        return self.rendered


class FakeCompletion:
    """Completion double: each mode returns a fixed string or raises a fixed error."""

    def __init__(self, text_response=None, vision_response=None):
        self.text_response = text_response
        self.vision_response = vision_response
        self.text_calls = []
        self.vision_calls = []

    def complete_text(self, system_prompt: str, user_text: str) -> str:
        self.text_calls.append((system_prompt, user_text))
        return self._respond(self.text_response)

    def complete_vision(self, prompt: str, image_data: bytes, mime_type: str) -> str:
        self.vision_calls.append((prompt, image_data, mime_type))
        return self._respond(self.vision_response)

    @staticmethod
    def _respond(response):
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise AssertionError("Completion mode was not expected to be called")
        return response


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def report_text():
    return SHIFT_REPORT_TEXT


@pytest.fixture
def ocr_failure():
    return FakeOCR(error=AcquisitionError("tesseract not reachable"))
