"""
Shared fixtures for NisseKomm tests.
"""

from datetime import datetime

import pytest

from nissekomm.clock import FixedClock
from nissekomm.config import Settings
from nissekomm.content import load_catalog
from nissekomm.engine import GameEngine
from nissekomm.facts import FactStore
from nissekomm.storage import LocalStorageAdapter


FAMILY_HEADERS = ['Family_Name', 'PIN_Hash', 'Session_ID', 'Timestamp']
FACT_HEADERS = ['Session_ID', 'Key', 'Value', 'Timestamp']


class MockSheetsClient:
    """Mock gspread worksheet for testing."""

    def __init__(self, headers):
        self.headers = headers
        self.rows = []
        self.fail_count = 0
        self.fail_with_rate_limit = False
        self.fail_with_error = False

    def _maybe_fail(self):
        if self.fail_with_rate_limit and self.fail_count > 0:
            self.fail_count -= 1
            raise Exception("Rate limit exceeded (429)")
        if self.fail_with_error:
            raise Exception("Connection error")

    def get_all_records(self):
        """Mock get_all_records method."""
        self._maybe_fail()
        return [dict(zip(self.headers, row)) for row in self.rows]

    def append_row(self, row):
        """Mock append_row method."""
        self._maybe_fail()
        self.rows.append(list(row))

    def update_cell(self, row_num, col_num, value):
        """Mock update_cell method."""
        self._maybe_fail()
        if row_num - 2 < len(self.rows):  # -2 for header and 1-indexing
            self.rows[row_num - 2][col_num - 1] = value

    def delete_rows(self, row_num):
        """Mock delete_rows method."""
        self._maybe_fail()
        del self.rows[row_num - 2]


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 12, 10, 18, 30))


@pytest.fixture
def storage():
    return LocalStorageAdapter()


@pytest.fixture
def facts(storage):
    return FactStore(storage)


@pytest.fixture
def engine(catalog, storage, clock):
    return GameEngine(catalog, storage, clock, Settings())


@pytest.fixture
def test_mode_engine(catalog, clock):
    return GameEngine(catalog, LocalStorageAdapter(), clock, Settings(test_mode=True))


@pytest.fixture
def families_sheet():
    return MockSheetsClient(FAMILY_HEADERS)


@pytest.fixture
def facts_sheet():
    return MockSheetsClient(FACT_HEADERS)


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch):
    """Skip the real retry waits."""
    monkeypatch.setattr('nissekomm.database.time.sleep', lambda seconds: None)
